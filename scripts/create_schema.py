"""
Create the DelayGuard tables.

Creates every table in delayguard.db.tables that does not exist yet, on the
database configured by INSTANCE_CONNECTION_NAME/DB_NAME/DB_USER (Cloud SQL)
or DATABASE_URL (local Postgres).
"""

import sys

from dotenv import load_dotenv

from delayguard.db import DatabaseConnection
from delayguard.db.tables import metadata


def main():
    load_dotenv()

    print("🗄️  Creating DelayGuard schema...")
    try:
        DatabaseConnection.initialize()
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    try:
        metadata.create_all(DatabaseConnection.get_engine())
        for table in metadata.sorted_tables:
            print(f"✅ {table.name}")
    except Exception as e:
        print(f"❌ Schema creation failed: {e}")
        sys.exit(1)
    finally:
        DatabaseConnection.close()


if __name__ == "__main__":
    main()
