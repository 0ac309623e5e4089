FEEDS = [
    {"id": 1, "title": "SVT Nyheter", "href": "https://www.svt.se/rss.xml", "kind": "rss"},
    {"id": 2, "title": "Dagens Nyheter", "href": "https://www.dn.se/direkt/", "kind": "html"},
    {"id": 3, "title": "Svenska Dagbladet", "href": "https://www.svd.se/feed/articles.rss", "kind": "rss"},
    {
        "id": 4,
        "title": "Aftonbladet",
        "href": "https://rss.aftonbladet.se/rss2/small/pages/sections/senastenytt/",
        "kind": "rss",
    },
    {"id": 5, "title": "Expressen", "href": "https://feeds.expressen.se/nyheter/", "kind": "rss"},
    {"id": 6, "title": "Dagen", "href": "https://dagen.se/arc/outboundfeeds/rss", "kind": "rss"},
    {"id": 7, "title": "TV4", "href": "https://www.tv4.se:443/rss", "kind": "rss"},
    {"id": 8, "title": "ABC News", "href": "https://abcnyheter.se/feed", "kind": "rss"},
    {"id": 9, "title": "Nkpg News", "href": "https://nkpg.news/feed/", "kind": "rss"},
    {"id": 10, "title": "Skaraborgs Nyheter", "href": "https://skaraborgsnyheter.se/feed", "kind": "rss"},
]
