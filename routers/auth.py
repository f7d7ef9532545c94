from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from starlette import status

from middleware.rate_limiter import limiter
from models.audit_logs import AuditAction
from models.users import UserRole
from schemas.auth_schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    PasswordResetCompleteRequest,
    PasswordResetRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserEnvelope,
    UserOut,
)
from services.audit_service import AuditService
from services.auth_service import AuthService
from services.email_service import send_password_reset_email, send_welcome_email
from services.password_service import RESET_REQUESTED_MESSAGE, PasswordService
from utils.deps import (
    admin_dependency,
    bearer_scheme,
    context_dependency,
    db_dependency,
    settings_dependency,
    token_service_dependency,
    user_dependency,
)
from utils.logger import get_logger
from utils.response import render, style_dependency

# Setup logger
logger = get_logger(__name__)


# Mounted twice by main.py: /api/auth (legacy) and /api/v1/users/auth (v1)
router = APIRouter(tags=["auth"])


def _token_response(user, pair: dict) -> TokenResponse:
    return TokenResponse(
        access_token=pair["access_token"],
        refresh_token=pair["refresh_token"],
        token_type=pair["token_type"],
        user=UserOut.model_validate(user)
    )


@router.post("/login")
@limiter.limit("5/minute")
def login(
    request: Request,
    body: LoginRequest,
    db: db_dependency,
    tokens: token_service_dependency,
    ctx: context_dependency,
    style: style_dependency,
):
    """
    Exchange username (or e-mail) and password for an access/refresh pair.
    """
    user, pair = AuthService.login(db, tokens, body.username, body.password, ctx)
    return render(_token_response(user, pair), style)


@router.post("/refresh")
@limiter.limit("10/minute")
def refresh_token(
    request: Request,
    db: db_dependency,
    tokens: token_service_dependency,
    app_settings: settings_dependency,
    ctx: context_dependency,
    style: style_dependency,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    body: Optional[RefreshTokenRequest] = None,
):
    """
    Rotate tokens. The consumed refresh token is revoked and a new pair
    is issued.
    """
    user, pair = tokens.refresh_session(
        db,
        refresh_token=body.refresh_token if body else None,
        access_token=credentials.credentials if credentials else None,
        allow_fallback=app_settings.ALLOW_LEGACY_REFRESH_FALLBACK
    )
    AuditService.record(db, AuditAction.TOKEN_REFRESH, user_id=user.id, ctx=ctx)
    db.commit()
    db.refresh(user)

    logger.info("Access token refreshed", extra={"user_id": user.id})

    return render(_token_response(user, pair), style)


@router.post("/logout")
@limiter.limit("10/minute")
def logout(
    request: Request,
    user: user_dependency,
    db: db_dependency,
    tokens: token_service_dependency,
    ctx: context_dependency,
    style: style_dependency,
):
    """
    Revoke every refresh token the caller holds (logout everywhere).
    """
    PasswordService.logout(db, tokens, user, ctx)
    return render(MessageResponse(message="Logged out successfully"), style)


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def register(
    request: Request,
    body: RegisterRequest,
    admin: admin_dependency,
    db: db_dependency,
    bg: BackgroundTasks,
    ctx: context_dependency,
    style: style_dependency,
):
    """
    Create an account (administrators only). The new user must change
    the initial password on first login.
    """
    user = AuthService.register_user(db, body, admin, ctx)

    if user.role == UserRole.CLIENT:
        bg.add_task(
            send_welcome_email,
            to_email=user.email,
            first_name=user.first_name,
            username=user.username
        )

    return render(UserEnvelope(user=UserOut.model_validate(user)), style, status.HTTP_201_CREATED)


@router.post("/password-reset-request")
@limiter.limit("3/minute")
def password_reset_request(
    request: Request,
    body: PasswordResetRequest,
    db: db_dependency,
    app_settings: settings_dependency,
    bg: BackgroundTasks,
    ctx: context_dependency,
    style: style_dependency,
):
    """
    Request a password reset e-mail. The answer is the same whether or
    not the address belongs to an account.
    """
    issued = PasswordService.request_reset(
        db, body.email,
        expires_minutes=app_settings.PASSWORD_RESET_EXPIRE_MINUTES,
        ctx=ctx
    )

    if issued is not None:
        user, raw_token = issued
        bg.add_task(
            send_password_reset_email,
            to_email=user.email,
            reset_token=raw_token,
            expires_minutes=app_settings.PASSWORD_RESET_EXPIRE_MINUTES
        )

    return render(MessageResponse(message=RESET_REQUESTED_MESSAGE), style)


@router.post("/password-reset")
@limiter.limit("5/minute")
def password_reset(
    request: Request,
    body: PasswordResetCompleteRequest,
    db: db_dependency,
    tokens: token_service_dependency,
    ctx: context_dependency,
    style: style_dependency,
):
    """
    Complete a reset (public endpoint). Signs the user out everywhere.
    """
    PasswordService.complete_reset(db, tokens, body.token, body.new_password, ctx)
    return render(MessageResponse(message="Password updated successfully. Please login again."), style)


@router.post("/change-password")
@limiter.limit("5/minute")
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: user_dependency,
    db: db_dependency,
    tokens: token_service_dependency,
    app_settings: settings_dependency,
    ctx: context_dependency,
    style: style_dependency,
):
    PasswordService.change_password(
        db, tokens, user,
        body.current_password,
        body.new_password,
        revoke_sessions=app_settings.REVOKE_SESSIONS_ON_PASSWORD_CHANGE,
        ctx=ctx
    )
    return render(MessageResponse(message="Password changed successfully"), style)


@router.api_route("/validate", methods=["GET", "POST"])
def validate_session(request: Request, user: user_dependency, style: style_dependency):
    """Return the caller's profile if the bearer token is live."""
    return render(UserEnvelope(user=UserOut.model_validate(user)), style)
