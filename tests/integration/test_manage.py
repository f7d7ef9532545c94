from datetime import timedelta

import pytest

from core.exceptions import DuplicateUserError
from models.refresh_tokens import RefreshToken
from models.users import UserRole
from scripts.manage import build_parser, create_superuser, purge_tokens
from utils.hashing import verify_password
from utils.tokens import utcnow


def test_create_superuser(session):
    user = create_superuser(session, "root", "Root@Example.com", "Sup3rSecret", first_name="Ops")

    assert user.role == UserRole.ADMIN
    assert user.email == "root@example.com"
    assert user.must_change_password is False
    assert verify_password("Sup3rSecret", user.password_hash)


def test_create_superuser_rejects_duplicates_and_weak_passwords(session, admin_user):
    with pytest.raises(DuplicateUserError):
        create_superuser(session, "admin", "other@example.com", "Sup3rSecret")

    with pytest.raises(ValueError):
        create_superuser(session, "root", "root@example.com", "weak")


def test_purge_tokens_command(session, token_service, client_user):
    old = utcnow() - timedelta(days=45)
    session.add(RefreshToken(
        user_id=client_user.id,
        token_hash="f" * 64,
        created_at=old,
        expires_at=old + timedelta(days=7)
    ))
    session.commit()

    assert purge_tokens(session, token_service, days=30) == 1
    assert session.query(RefreshToken).count() == 0


def test_parser_commands():
    args = build_parser().parse_args(["purge-tokens", "--days", "14"])
    assert args.command == "purge-tokens"
    assert args.days == 14

    args = build_parser().parse_args(["create-superuser", "--username", "root", "--email", "r@example.com"])
    assert args.first_name == ""
