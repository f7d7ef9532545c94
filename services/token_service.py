from datetime import timedelta
from typing import Optional

from jose import jwt, JWTError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import Settings
from core.exceptions import AuthenticationError
from models.refresh_tokens import RefreshToken
from models.users import User
from utils.logger import get_logger
from utils.tokens import (
    generate_opaque_token,
    hash_token,
    is_expired,
    utcnow,
)

logger = get_logger(__name__)

INVALID_ACCESS_TOKEN = "Invalid or expired token"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


class TokenService:
    """
    Issues and validates the two credential kinds.

    Access tokens are signed JWTs checked without touching the database.
    Refresh tokens are opaque random strings whose SHA-256 lives in the
    refresh_tokens ledger, so they can be revoked server side.

    Methods that write stage changes on the given session; the calling
    service owns the commit.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_ttl: timedelta = timedelta(minutes=15),
        refresh_token_ttl: timedelta = timedelta(days=7),
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            access_token_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_token_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    # Access tokens

    def issue_access_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """
        Sign an access token for `user`.

        Claims: sub (user id), username, role, type="access", iat, exp.
        """
        now = utcnow()
        payload = {
            "sub": user.id,
            "username": user.username,
            "role": user.role.value if hasattr(user.role, "value") else user.role,
            "type": "access",
            "iat": now,
            "exp": now + (expires_delta or self.access_token_ttl),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> dict:
        """
        Verify signature, expiry and token type.

        Raises:
            AuthenticationError: for anything that is not a live access token
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except JWTError:
            raise AuthenticationError(INVALID_ACCESS_TOKEN)

        if payload.get("type") != "access" or not payload.get("sub"):
            raise AuthenticationError(INVALID_ACCESS_TOKEN)

        return payload

    @staticmethod
    def read_unverified_subject(token: str) -> Optional[str]:
        """Subject of a possibly expired access token, without verifying it."""
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return None
        if claims.get("type") != "access":
            return None
        subject = claims.get("sub")
        return subject if isinstance(subject, str) else None

    # Refresh tokens

    def issue_refresh_token(self, db: Session, user_id: str) -> str:
        """Persist a new refresh token row and return the raw token."""
        raw_token = generate_opaque_token()
        db.add(RefreshToken(
            user_id=user_id,
            token_hash=hash_token(raw_token),
            expires_at=utcnow() + self.refresh_token_ttl
        ))
        db.flush()
        return raw_token

    def create_token_pair(self, db: Session, user: User) -> dict:
        return {
            "access_token": self.issue_access_token(user),
            "refresh_token": self.issue_refresh_token(db, user.id),
            "token_type": "bearer"
        }

    @staticmethod
    def is_usable(record: RefreshToken) -> bool:
        return record.revoked_at is None and not is_expired(record.expires_at)

    def validate_refresh_token(self, db: Session, raw_token: str) -> Optional[RefreshToken]:
        record = db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(raw_token)
        ).one_or_none()

        if record is None or not self.is_usable(record):
            return None
        return record

    def find_latest_valid_refresh_token(self, db: Session, user_id: str) -> Optional[RefreshToken]:
        candidates = db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None)
        ).order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc()).all()

        return next((record for record in candidates if self.is_usable(record)), None)

    def refresh_session(
        self,
        db: Session,
        refresh_token: Optional[str] = None,
        access_token: Optional[str] = None,
        allow_fallback: bool = False,
    ) -> tuple[User, dict]:
        """
        Exchange a refresh token for a new access + refresh pair.

        With `allow_fallback`, a request that carries no refresh token but
        does carry an access token (expired or not) is matched to the
        user's newest usable refresh token. The consumed refresh token is
        revoked on every successful exchange.

        Raises:
            AuthenticationError: missing, unknown, revoked or expired token,
                or an inactive owner
        """
        record = None

        if refresh_token:
            record = self.validate_refresh_token(db, refresh_token)
        elif access_token and allow_fallback:
            user_id = self.read_unverified_subject(access_token)
            if user_id:
                record = self.find_latest_valid_refresh_token(db, user_id)
                if record is not None:
                    logger.info(
                        "Refresh resolved through access-token fallback",
                        extra={"user_id": user_id}
                    )

        if record is None:
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        user = record.user
        if user is None or not user.is_active:
            logger.warning(
                "Refresh rejected - owner inactive",
                extra={"user_id": record.user_id}
            )
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        # Conditional revoke: of two concurrent exchanges only one matches
        claimed = db.query(RefreshToken).filter(
            RefreshToken.id == record.id,
            RefreshToken.revoked_at.is_(None)
        ).update({RefreshToken.revoked_at: utcnow()}, synchronize_session="fetch")

        if claimed != 1:
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        return user, self.create_token_pair(db, user)

    def revoke_all_user_tokens(self, db: Session, user_id: str) -> int:
        """Revoke every live refresh token the user holds. Returns the row count."""
        return db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None)
        ).update({RefreshToken.revoked_at: utcnow()}, synchronize_session=False)

    def purge_stale_tokens(self, db: Session, retention_days: int) -> int:
        """
        Delete ledger rows issued more than `retention_days` ago that are
        revoked or expired. Live tokens are never purged.
        """
        now = utcnow()
        cutoff = now - timedelta(days=retention_days)

        return db.query(RefreshToken).filter(
            RefreshToken.created_at < cutoff,
            or_(RefreshToken.revoked_at.isnot(None), RefreshToken.expires_at <= now)
        ).delete(synchronize_session=False)
