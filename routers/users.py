from typing import Optional

from fastapi import APIRouter, Query, Request

from middleware.rate_limiter import limiter
from models.users import UserRole
from schemas.auth_schemas import UserEnvelope, UserOut
from schemas.user_schemas import (
    DirectoryEntry,
    ProfileUpdateRequest,
    UserDirectory,
    UserPage,
    UserUpdateRequest,
)
from services.user_service import UserService
from utils.deps import (
    admin_dependency,
    context_dependency,
    db_dependency,
    token_service_dependency,
    user_dependency,
    user_reader_dependency,
)
from utils.logger import get_logger
from utils.response import render, style_dependency

# Setup logger
logger = get_logger(__name__)


router = APIRouter(tags=["users"])


def page_links(page: int, limit: int, total: int) -> tuple[Optional[int], Optional[int]]:
    """Neighbouring page numbers, or None at either end."""
    next_page = page + 1 if page * limit < total else None
    previous_page = page - 1 if page > 1 else None
    return next_page, previous_page


@router.get("/me")
@limiter.limit("30/minute")
def get_me(request: Request, user: user_dependency, style: style_dependency):
    """
    Get current user info (protected endpoint).
    """
    return render(UserEnvelope(user=UserOut.model_validate(user)), style)


@router.patch("/me")
@limiter.limit("10/minute")
def update_me(
    request: Request,
    body: ProfileUpdateRequest,
    user: user_dependency,
    db: db_dependency,
    style: style_dependency,
):
    """
    Update own profile. Role and account status are not editable here.
    """
    updated = UserService.update_profile(db, user, body)

    logger.info("Profile updated", extra={"user_id": updated.id})

    return render(UserEnvelope(user=UserOut.model_validate(updated)), style)


@router.get("/")
def list_users(
    request: Request,
    reader: user_reader_dependency,
    db: db_dependency,
    style: style_dependency,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    users, total = UserService.list_users(
        db, role=role, is_active=is_active, search=search, page=page, limit=limit
    )
    next_page, previous_page = page_links(page, limit, total)

    return render(UserPage(
        results=[UserOut.model_validate(u) for u in users],
        count=total,
        next=next_page,
        previous=previous_page
    ), style)


def _directory(db, role: UserRole) -> UserDirectory:
    users = UserService.list_directory(db, role)
    return UserDirectory(results=[DirectoryEntry.model_validate(u) for u in users], count=len(users))


# Directory routes sit above /{user_id} so they are matched first
@router.get("/therapists")
@router.get("/therapists/", include_in_schema=False)
def list_therapists(request: Request, user: user_dependency, db: db_dependency, style: style_dependency):
    """Active therapists, for appointment scheduling."""
    return render(_directory(db, UserRole.THERAPIST), style)


@router.get("/clients")
@router.get("/clients/", include_in_schema=False)
def list_clients(request: Request, user: user_dependency, db: db_dependency, style: style_dependency):
    """Active clients, for appointment scheduling."""
    return render(_directory(db, UserRole.CLIENT), style)


@router.get("/{user_id}")
def get_user(request: Request, user_id: str, reader: user_reader_dependency, db: db_dependency, style: style_dependency):
    user = UserService.get_user(db, user_id)
    return render(UserEnvelope(user=UserOut.model_validate(user)), style)


@router.patch("/{user_id}")
@limiter.limit("30/minute")
def update_user(
    request: Request,
    user_id: str,
    body: UserUpdateRequest,
    admin: admin_dependency,
    db: db_dependency,
    tokens: token_service_dependency,
    ctx: context_dependency,
    style: style_dependency,
):
    """
    Administrative update: profile fields, role, active flag.
    Deactivation signs the user out everywhere.
    """
    user = UserService.update_user(db, tokens, user_id, body, admin, ctx)
    return render(UserEnvelope(user=UserOut.model_validate(user)), style)
