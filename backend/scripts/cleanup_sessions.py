"""CLI script to delete expired or stale user sessions.
Usage: python scripts/cleanup_sessions.py [--max-age-days DAYS]
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `licence_admin` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from licence_admin.database import Database
from licence_admin.errors import LicenceAdminError
from licence_admin import services


def main(max_age_days: Optional[int] = None, database_url: Optional[str] = None) -> int:
    """Remove sessions past `expires_at` or older than `max_age_days`.

    Removed session ids are printed to stdout.
    """
    database = Database(database_url)
    try:
        removed = services.SessionService(database).cleanup_expired_sessions(max_age_days)
    except LicenceAdminError as e:
        print(e)
        return 1
    finally:
        database.dispose()
    for session_id in removed:
        print(f'Removed session {session_id}')
    print(f'Total removed sessions: {len(removed)}')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--max-age-days', type=int, help='Also remove sessions created more than this many days ago')
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    args = parser.parse_args()
    sys.exit(main(max_age_days=args.max_age_days, database_url=args.database_url))
