import argparse
import logging

from invoice_ledger.config import Settings, configure_logging
from invoice_ledger.db.engine import Database

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Create the ledger schema.")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="drop existing tables first (destroys data)",
    )
    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings)

    database = Database(settings)
    try:
        database.create_schema(drop_existing=args.drop)
    finally:
        database.dispose()
    logger.info("DB schema created.")


if __name__ == "__main__":
    main()
