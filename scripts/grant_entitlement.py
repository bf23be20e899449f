"""
Script to create a user or change their entitlement level / role.
Run: python -m scripts.grant_entitlement admin@example.com --level PRO --role content_admin
"""
import argparse
import logging
import sys

from contentpacks.core.security import create_access_token
from contentpacks.db.init_db import init_db
from contentpacks.db.models.user import User
from contentpacks.db.session import SessionLocal

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def grant_entitlement(email: str, level: str = "PRO", role: str = None) -> bool:
    """Create the user if needed, then set their entitlement level (and role)."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()

        if not user:
            logger.info(f"Creating new user: {email}")
            user = User(email=email.lower(), full_name=email.split("@")[0])
            db.add(user)
        else:
            logger.info(f"Found existing user: {email} (ID: {user.id})")

        user.entitlement_level = level
        if role:
            user.role = role

        db.commit()
        db.refresh(user)
        logger.info(f"User {email} now has entitlement={user.entitlement_level}, role={user.role}")
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating user: {e}", exc_info=True)
        return False
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Grant a content pack entitlement")
    parser.add_argument("email")
    parser.add_argument("--level", choices=["FREE", "PRO"], default="PRO")
    parser.add_argument("--role", choices=["user", "admin", "content_admin"])
    parser.add_argument("--create-tables", action="store_true", help="Create tables first (local SQLite)")
    parser.add_argument("--token", action="store_true", help="Print a bearer token for the user")
    args = parser.parse_args()

    if args.create_tables:
        init_db()

    if not grant_entitlement(args.email, args.level, args.role):
        print(f"\n[ERROR] Failed to update user {args.email}")
        sys.exit(1)

    print(f"\n[SUCCESS] {args.email} -> {args.level}")
    if args.token:
        print(f"   Token: {create_access_token({'sub': args.email.lower()})}")
