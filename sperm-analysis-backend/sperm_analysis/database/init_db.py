# sperm_analysis/database/init_db.py
from loguru import logger

from sperm_analysis.database.db import init_db


def main():
    logger.info("Creating tables...")
    init_db()
    logger.info("Done.")


if __name__ == "__main__":
    main()
