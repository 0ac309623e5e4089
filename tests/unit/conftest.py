import pytest

from ingest_entries.sources import FEEDS
from news_db.connection import Database


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'test.sqlite3'}")
    db.create_schema()
    db.seed_feeds(FEEDS)
    yield db
    db.dispose()
