"""Print the latest published report."""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv


def main() -> None:
    parser = argparse.ArgumentParser(description="Print the latest published report.")
    parser.add_argument("--config", default=None, help="Config name under configs/")
    parser.add_argument("--limit", type=int, default=20, help="Number of groups to print")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    logger = logging.getLogger(__name__)

    load_dotenv()

    from common.config import load_config
    from news_db.connection import Database
    from news_db.reports import get_latest_report

    config = load_config(args.config)
    database = Database(config.database.url)
    try:
        report = get_latest_report(
            database,
            config.clustering.field_name,
            config.clustering.lang,
            config.run.target_lang,
        )
    finally:
        database.dispose()

    if report is None:
        logger.info("No reports found")
        return

    print(f"Report {report.report_id} ({report.created_at.isoformat()}) score={report.score:.4f}")
    for group in report.groups[: args.limit]:
        marker = "" if group.translated else " [untranslated]"
        print(
            f"{group.position + 1:>3}. {group.score:.4f} ({group.member_count}) "
            f"{group.headline}{marker}"
        )
        print(f"     {group.link}  {group.published_at.isoformat()}")


if __name__ == "__main__":
    main()
