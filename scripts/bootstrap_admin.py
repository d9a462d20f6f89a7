#!/usr/bin/env python3
"""Promote an existing portal user to admin.

Usage:
    ADMIN_EMAIL=admin@acme.io python scripts/bootstrap_admin.py
    python scripts/bootstrap_admin.py --email admin@acme.io [--dry-run]

Uses MONGO_URI / MONGO_DB_NAME from the environment or .env file.
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


async def bootstrap_admin(email: str, dry_run: bool = False) -> str:
    # Import here to avoid loading config before env vars are set
    from agent_portal.core.config import settings
    from agent_portal.db.database import Database, create_mongo_client
    from agent_portal.models.user_models import Role
    from agent_portal.services.user_services import get_user_by_email, set_user_role

    client = create_mongo_client()
    try:
        users = Database(client, settings.mongo_db_name).users
        user = await get_user_by_email(users, email)
        if user is None:
            return "missing"
        if user.get("role") == Role.ADMIN:
            return "already_admin"
        if dry_run:
            return "dry_run"
        await set_user_role(users, email, Role.ADMIN)
        return "promoted"
    finally:
        client.close()


def main():
    parser = argparse.ArgumentParser(
        description="Promote a user to admin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--email",
        default=os.environ.get("ADMIN_EMAIL"),
        help="User email (or set ADMIN_EMAIL env var)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    args = parser.parse_args()

    if not args.email:
        print("Error: --email or ADMIN_EMAIL environment variable required")
        sys.exit(1)

    status = asyncio.run(bootstrap_admin(args.email, args.dry_run))
    if status == "missing":
        print(f"Error: no user registered with {args.email}. Register first at /api/v1/users/register")
        sys.exit(1)
    elif status == "already_admin":
        print(f"No changes needed - {args.email} is already an admin.")
    elif status == "dry_run":
        print(f"[DRY RUN] Would promote {args.email} to admin")
    else:
        print(f"Promoted {args.email} to admin")


if __name__ == "__main__":
    main()
