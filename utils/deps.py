from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from core.config import Settings
from core.database import SessionLocal
from core.exceptions import AuthenticationError, AuthorizationError
from core.permissions import ADMIN_ROLES, USER_READER_ROLES, is_role_allowed, normalize_roles
from models.users import User
from services.audit_service import RequestContext
from services.auth_service import AuthService
from services.token_service import TokenService


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


db_dependency = Annotated[Session, Depends(get_db)]


def get_settings_dependency(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


settings_dependency = Annotated[Settings, Depends(get_settings_dependency)]
token_service_dependency = Annotated[TokenService, Depends(get_token_service)]


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )


context_dependency = Annotated[RequestContext, Depends(get_request_context)]

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    db: db_dependency,
    tokens: token_service_dependency,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> User:
    """
    Session validator.

    The token only proves identity; the user row is re-read on every
    request so deactivation and role changes apply before the token
    expires.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing token")

    payload = tokens.decode_access_token(credentials.credentials)

    user = AuthService.get_active_user_by_id(db, payload["sub"])
    if user is None:
        raise AuthenticationError("User not found or inactive")

    return user


user_dependency = Annotated[User, Depends(get_current_user)]


def require_role(*roles):
    """
    Build a dependency that admits authenticated users whose role is in
    `roles`, and answers 403 for everyone else.
    """
    allowed = normalize_roles(roles)
    if not allowed:
        raise ValueError("require_role needs at least one role")

    def role_checker(user: user_dependency) -> User:
        if not is_role_allowed(user.role, allowed):
            raise AuthorizationError("Insufficient permissions")
        return user

    return role_checker


admin_dependency = Annotated[User, Depends(require_role(*ADMIN_ROLES))]
user_reader_dependency = Annotated[User, Depends(require_role(*USER_READER_ROLES))]
