"""
Link profiles to identity accounts by email.

Pages through the users table (USERS_PAGE_SIZE per page), matches profiles by
case-insensitive email and sets profiles.user_id where it is missing.

    SERVICE_DATABASE_URL=postgresql+psycopg2://... DRY_RUN=true python scripts/reconcile_auth_users.py

Set DRY_RUN=true (or pass --dry-run) to only report the links it would make.
"""

# Add project root to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import os

from sqlalchemy.orm import sessionmaker

from app.common.errors import BackendError
from app.core.config import settings
from app.database.database import build_engine
from app.modules.auth.maintenance import reconcile_auth_users


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def main() -> int:
    parser = argparse.ArgumentParser(description="Link profiles to identity users by email")
    parser.add_argument("--dry-run", action="store_true", help="Report without writing")
    parser.add_argument("--page-size", type=int, default=settings.USERS_PAGE_SIZE)
    args = parser.parse_args()

    if not settings.SERVICE_DATABASE_URL:
        print("Missing SERVICE_DATABASE_URL environment variable.")
        return 1

    dry_run = args.dry_run or _env_flag("DRY_RUN")
    engine = build_engine(settings.SERVICE_DATABASE_URL)
    db = sessionmaker(bind=engine, autoflush=False)()
    try:
        print(f"Starting reconciliation (dry_run={dry_run})")
        summary = reconcile_auth_users(db, dry_run=dry_run, page_size=args.page_size, report=print)

        print("\nReconciliation complete.")
        print(f"  Total users scanned: {summary.scanned}")
        print(f"  Profiles matched:    {summary.matched}")
        print(f"  Profiles updated:    {summary.updated}")
        print(f"  Already linked:      {summary.already_linked}")
        print(f"  Unmatched users:     {summary.unmatched}")
        if dry_run:
            print(f"  Links planned:       {len(summary.planned_links)}")
        return 0
    except BackendError as e:
        print(f"Error: {e.message}")
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}")
        return 1
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
