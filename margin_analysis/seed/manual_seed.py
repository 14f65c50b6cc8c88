import logging
import sys

from margin_analysis.core.config import settings
from margin_analysis.database import engine, Base
from margin_analysis import models  # noqa: F401  (register tables)
from margin_analysis.seed.seed_margin import seed_margin_reference_data

logger = logging.getLogger(__name__)


def main():
    print("WARNING: This script will seed the database with initial data.")
    print(f"Target Environment: {settings.environment}")
    print(f"Database: {settings.database_url.split('@')[-1]}")

    confirm = input("Are you sure you want to proceed? (yes/no): ")
    if confirm.lower() != "yes":
        print("Aborted.")
        return

    try:
        print("Ensuring tables exist...")
        Base.metadata.create_all(bind=engine)
        print("Seeding resource types and exchange rates...")
        seed_margin_reference_data()
        print("Seeding completed successfully.")
    except Exception:
        logger.exception("Seeding failed")
        sys.exit(1)

if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    main()
