#!/usr/bin/env python3
"""Operator commands.

Usage:
    python scripts/manage.py create-superuser --username admin --email admin@example.com
    python scripts/manage.py purge-tokens --days 30

Environment Variables:
    ADMIN_PASSWORD: Password for create-superuser when --password is omitted
    DATABASE_URL, SECRET_KEY: as for the API
"""
import argparse
import getpass
import os
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import models  # noqa: E402,F401
from core.config import get_settings  # noqa: E402
from core.database import Base, SessionLocal, engine  # noqa: E402
from core.exceptions import DuplicateUserError  # noqa: E402
from models.audit_logs import AuditAction  # noqa: E402
from models.users import User, UserRole  # noqa: E402
from schemas.auth_schemas import normalize_email, validate_password_strength  # noqa: E402
from services.audit_service import AuditService  # noqa: E402
from services.token_service import TokenService  # noqa: E402
from utils.hashing import get_password_hash  # noqa: E402
from utils.logger import get_logger  # noqa: E402

logger = get_logger("manage")


def create_superuser(db, username: str, email: str, password: str, first_name: str = "", last_name: str = "") -> User:
    """Create an active administrator. Raises DuplicateUserError on a clash."""
    email = normalize_email(email)
    validate_password_strength(password)

    existing = db.query(User).filter((User.username == username) | (User.email == email)).first()
    if existing:
        field = "username" if existing.username == username else "email"
        raise DuplicateUserError(f"{field.capitalize()} already exists", field=field)

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(password),
        role=UserRole.ADMIN,
        first_name=first_name,
        last_name=last_name,
        must_change_password=False
    )
    db.add(user)
    db.flush()
    AuditService.record(
        db, AuditAction.REGISTER,
        entity_id=user.id,
        new_values={"username": username, "email": email, "role": UserRole.ADMIN.value, "source": "cli"}
    )
    db.commit()
    db.refresh(user)

    logger.info("Superuser created", extra={"user_id": user.id})
    return user


def purge_tokens(db, tokens: TokenService, days: int) -> int:
    deleted = tokens.purge_stale_tokens(db, retention_days=days)
    db.commit()

    logger.info("Stale refresh tokens purged", extra={"deleted": deleted, "retention_days": days})
    return deleted


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Operator commands for the auth API")
    commands = parser.add_subparsers(dest="command", required=True)

    superuser = commands.add_parser("create-superuser", help="Create an administrator account")
    superuser.add_argument("--username", required=True)
    superuser.add_argument("--email", required=True)
    superuser.add_argument("--password", default=os.environ.get("ADMIN_PASSWORD"),
                           help="Defaults to $ADMIN_PASSWORD, then an interactive prompt")
    superuser.add_argument("--first-name", default="")
    superuser.add_argument("--last-name", default="")

    purge = commands.add_parser("purge-tokens", help="Delete old revoked or expired refresh tokens")
    purge.add_argument("--days", type=int, default=None,
                       help="Retention window in days (default: TOKEN_RETENTION_DAYS)")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.command == "create-superuser":
            password = args.password or getpass.getpass("Password: ")
            try:
                user = create_superuser(
                    db, args.username, args.email, password,
                    first_name=args.first_name, last_name=args.last_name
                )
            except (ValueError, DuplicateUserError) as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            print(f"Created admin {user.username} (id: {user.id})")

        elif args.command == "purge-tokens":
            days = args.days if args.days is not None else settings.TOKEN_RETENTION_DAYS
            deleted = purge_tokens(db, TokenService.from_settings(settings), days)
            print(f"Deleted {deleted} refresh token(s) older than {days} day(s)")
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
