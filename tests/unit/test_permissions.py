import pytest

from core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DuplicateUserError,
    InvalidCredentialsError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
)
from core.permissions import ADMIN_ROLES, is_role_allowed, normalize_roles
from models.users import UserRole
from utils.deps import require_role


def test_normalize_roles_accepts_names_and_members():
    assert normalize_roles(["admin", UserRole.STAFF]) == frozenset({UserRole.ADMIN, UserRole.STAFF})


def test_unknown_role_rejected():
    with pytest.raises(ValueError):
        normalize_roles(["superuser"])


def test_role_membership():
    assert is_role_allowed(UserRole.ADMIN, ADMIN_ROLES) is True
    assert is_role_allowed("admin", ADMIN_ROLES) is True
    assert is_role_allowed(UserRole.THERAPIST, ADMIN_ROLES) is False


def test_require_role_needs_roles():
    with pytest.raises(ValueError):
        require_role()


def test_error_status_codes_and_defaults():
    assert AuthenticationError().status_code == 401
    assert InvalidCredentialsError().message == "Invalid credentials"
    assert AuthorizationError().status_code == 403
    assert NotFoundError().status_code == 404
    assert InternalError().to_dict() == {"error": "Internal server error"}
    assert InvalidTokenError().status_code == 400
    assert InvalidTokenError().message == "Invalid or expired token"


def test_conflict_body_names_field():
    assert DuplicateUserError("Username already exists", field="username").to_dict() == {
        "error": "Username already exists",
        "field": "username"
    }
    assert ConflictError("Clash").to_dict() == {"error": "Clash"}
