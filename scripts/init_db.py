"""
Database initialization script.

Creates all tables for the configured DATABASE_URL and lists them.
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect

from leadscout.db.models import Base
from leadscout.db.session import create_db_engine
from leadscout.settings import settings


def init_database(engine):
    """Create all database tables."""
    print("Creating database tables...")
    Base.metadata.create_all(engine)
    print("Tables created successfully.")


def list_tables(engine):
    """List all tables in the database."""
    inspector = inspect(engine)
    tables = inspector.get_table_names()
    print("\nDatabase tables:")
    for table in sorted(tables):
        print(f"  - {table}")
    return tables


if __name__ == "__main__":
    engine = create_db_engine(settings)
    init_database(engine)

    tables = list_tables(engine)
    expected = sorted(Base.metadata.tables)
    missing = [t for t in expected if t not in tables]
    if missing:
        print(f"\nWarning: Missing tables: {missing}")
        sys.exit(1)

    print("\nAll tables present. Database is ready.")
