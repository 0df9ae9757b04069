"""
Approve the administrator account.

Sets the admin profile (ADMIN_EMAIL by default) to 'active' and approves its
pending invitations. Uses the elevated SERVICE_DATABASE_URL connection.

    SERVICE_DATABASE_URL=postgresql+psycopg2://... python scripts/approve_admin_account.py \
        --email admin@medplus.app

Exits with status 1 when the profile is missing or a database call fails.
"""

# Add project root to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse

from sqlalchemy.orm import sessionmaker

from app.common.errors import BackendError
from app.core.config import settings
from app.database.database import build_engine
from app.modules.auth.maintenance import approve_admin_account


def main() -> int:
    parser = argparse.ArgumentParser(description="Approve the administrator account")
    parser.add_argument("--email", default=settings.ADMIN_EMAIL)
    args = parser.parse_args()

    if not settings.SERVICE_DATABASE_URL:
        print("Missing SERVICE_DATABASE_URL environment variable.")
        return 1

    engine = build_engine(settings.SERVICE_DATABASE_URL)
    db = sessionmaker(bind=engine, autoflush=False)()
    try:
        print(f"Approving admin account: {args.email}")
        result = approve_admin_account(db, args.email)

        print(f"  Previous status: {result.previous_status}")
        print(f"  Role:            {result.role}")
        print("  Status:          active")
        if result.invitations_approved:
            print(f"  Invitations approved: {len(result.invitations_approved)}")
        else:
            print("  No pending invitations.")
        for invitation_id in result.invitation_errors:
            print(f"  Warning: could not approve invitation {invitation_id}")

        print("\nAdmin account approved.")
        return 0
    except BackendError as e:
        print(f"Error: {e.message}")
        return 1
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
