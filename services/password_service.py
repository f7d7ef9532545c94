from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import InvalidCredentialsError, InvalidTokenError
from models.audit_logs import AuditAction
from models.password_reset_tokens import PasswordResetToken
from models.users import User
from services.audit_service import AuditService, RequestContext
from services.token_service import TokenService
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger
from utils.tokens import generate_opaque_token, get_expiry_time, hash_token, is_expired, utcnow

logger = get_logger(__name__)

RESET_REQUESTED_MESSAGE = "If the email exists, a reset link has been sent"


class PasswordService:
    """
    Password lifecycle: reset by e-mailed token, authenticated change,
    and logout (bulk refresh-token revocation).
    """

    @staticmethod
    def request_reset(
        db: Session,
        email: str,
        expires_minutes: int = 60,
        ctx: RequestContext | None = None,
    ) -> Optional[tuple[User, str]]:
        """
        Issue a reset token for the account behind `email`, if there is an
        active one. Returns (user, raw_token) or None. Callers must answer
        the client identically in both cases.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()

        known = user is not None and user.is_active

        # Same work on both paths: token, audit row, commit
        raw_token = generate_opaque_token()
        token_hash = hash_token(raw_token)
        if known:
            db.add(PasswordResetToken(
                user_id=user.id,
                token_hash=token_hash,
                expires_at=get_expiry_time(minutes=expires_minutes)
            ))
        AuditService.record(
            db, AuditAction.PASSWORD_RESET_REQUEST, user_id=user.id if known else None, ctx=ctx
        )
        db.commit()

        if not known:
            logger.info("Password reset requested for unknown or inactive email")
            return None

        logger.info("Password reset token issued", extra={"user_id": user.id})
        return user, raw_token

    @staticmethod
    def complete_reset(
        db: Session,
        tokens: TokenService,
        raw_token: str,
        new_password: str,
        ctx: RequestContext | None = None,
    ) -> User:
        """
        Redeem a reset token and set a new password.

        One transaction covers claiming the token, the password update and
        revoking every refresh token, so a failure leaves neither a stale
        password nor a replayable token behind.

        Raises:
            InvalidTokenError: token unknown, already used or expired
        """
        record = db.query(PasswordResetToken).filter(
            PasswordResetToken.token_hash == hash_token(raw_token)
        ).one_or_none()

        now = utcnow()
        if record is None or record.used_at is not None or is_expired(record.expires_at, now=now):
            logger.warning("Password reset failed - invalid or expired token")
            raise InvalidTokenError()

        try:
            # Conditional claim: a concurrent redemption of the same token
            # matches zero rows here.
            claimed = db.query(PasswordResetToken).filter(
                PasswordResetToken.id == record.id,
                PasswordResetToken.used_at.is_(None)
            ).update({PasswordResetToken.used_at: now}, synchronize_session=False)

            if claimed != 1:
                db.rollback()
                raise InvalidTokenError()

            user = db.get(User, record.user_id)
            user.password_hash = get_password_hash(new_password)
            user.must_change_password = False

            revoked = tokens.revoke_all_user_tokens(db, user.id)
            AuditService.record(
                db, AuditAction.PASSWORD_RESET,
                user_id=user.id,
                new_values={"revoked_sessions": revoked},
                ctx=ctx
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error("Password reset failed - storage error", exc_info=True)
            raise

        db.refresh(user)
        logger.info("Password reset successfully", extra={"user_id": user.id})
        return user

    @staticmethod
    def change_password(
        db: Session,
        tokens: TokenService,
        user: User,
        current_password: str,
        new_password: str,
        revoke_sessions: bool = False,
        ctx: RequestContext | None = None,
    ) -> User:
        """
        Self-service password change. Outstanding refresh tokens survive
        unless `revoke_sessions` is set.

        Raises:
            InvalidCredentialsError: current password does not match
        """
        if not verify_password(current_password, user.password_hash):
            logger.warning("Password change failed - incorrect current password", extra={"user_id": user.id})
            raise InvalidCredentialsError("Current password is incorrect")

        user.password_hash = get_password_hash(new_password)
        user.must_change_password = False

        revoked = tokens.revoke_all_user_tokens(db, user.id) if revoke_sessions else 0
        AuditService.record(
            db, AuditAction.PASSWORD_CHANGE,
            user_id=user.id,
            new_values={"revoked_sessions": revoked},
            ctx=ctx
        )
        db.commit()
        db.refresh(user)

        logger.info("Password changed", extra={"user_id": user.id, "revoked_sessions": revoked})
        return user

    @staticmethod
    def logout(
        db: Session,
        tokens: TokenService,
        user: User,
        ctx: RequestContext | None = None,
    ) -> int:
        """Revoke all of the user's live refresh tokens. Safe to repeat."""
        revoked = tokens.revoke_all_user_tokens(db, user.id)
        AuditService.record(
            db, AuditAction.LOGOUT,
            user_id=user.id,
            new_values={"revoked_sessions": revoked},
            ctx=ctx
        )
        db.commit()

        logger.info("User logged out", extra={"user_id": user.id, "revoked_sessions": revoked})
        return revoked
