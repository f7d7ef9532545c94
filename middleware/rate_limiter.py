from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from jose import jwt, JWTError

from core.config import settings


def get_user_id(request: Request):
    """
    Rate-limit key: the caller's user id when a valid bearer token is
    present, otherwise the client address.
    """
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        token = header[len("Bearer "):]
        app_settings = getattr(request.app.state, "settings", settings)
        try:
            payload = jwt.decode(token, app_settings.SECRET_KEY, algorithms=[app_settings.ALGORITHM])
            user_id = payload.get("sub")
            if user_id:
                return f"user:{user_id}"
        except JWTError:
            pass

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_user_id,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=not settings.is_testing
)
