"""Create or upgrade the database schema and seed the licence categories.

Usage: python run_migrations.py [--database-url URL]
"""
import argparse
import sys
from pathlib import Path

BASE = Path(__file__).resolve().parent
if str(BASE) not in sys.path:
    sys.path.insert(0, str(BASE))

from licence_admin.database import Database
from licence_admin.errors import SchemaInitializationError
from licence_admin.schema import initialize_schema


def run(database_url=None) -> int:
    """Initialise the schema on `database_url` (or the configured database).

    Safe to repeat: existing tables are kept and the seed is an upsert.
    """
    database = Database(database_url)
    print("Using database:", database.engine.url.render_as_string(hide_password=True))
    try:
        initialize_schema(database)
    except SchemaInitializationError as exc:
        print(exc)
        return 1
    finally:
        database.dispose()
    print("Schema initialised.")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    args = parser.parse_args()
    sys.exit(run(args.database_url))
