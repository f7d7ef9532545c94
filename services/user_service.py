from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError
from models.audit_logs import AuditAction
from models.users import User, UserRole
from schemas.user_schemas import ProfileUpdateRequest, UserUpdateRequest
from services.audit_service import AuditService, RequestContext
from services.token_service import TokenService
from utils.logger import get_logger

logger = get_logger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "email", "phone_number")


def _ensure_email_free(db: Session, email: str, user_id: str):
    taken = db.query(User.id).filter(User.email == email, User.id != user_id).first()
    if taken:
        raise ConflictError("Email already exists", field="email")


def _plain(value):
    return value.value if isinstance(value, UserRole) else value


class UserService:

    @staticmethod
    def list_users(
        db: Session,
        *,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[User], int]:
        query = db.query(User)

        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            ))

        total = query.count()
        users = query.order_by(User.last_name, User.first_name, User.username) \
            .offset((page - 1) * limit).limit(limit).all()
        return users, total

    @staticmethod
    def list_directory(db: Session, role: UserRole) -> list[User]:
        """Active users of one role, by last then first name. Open to any signed-in user."""
        return db.query(User).filter(
            User.role == role,
            User.is_active.is_(True)
        ).order_by(User.last_name, User.first_name, User.username).all()

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def update_profile(db: Session, user: User, changes: ProfileUpdateRequest) -> User:
        data = changes.model_dump(exclude_unset=True)

        if data.get("email") and data["email"] != user.email:
            _ensure_email_free(db, data["email"], user.id)

        for field in PROFILE_FIELDS:
            if field in data and data[field] is not None:
                setattr(user, field, data[field])

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email already exists", field="email")

        db.refresh(user)
        return user

    @staticmethod
    def update_user(
        db: Session,
        tokens: TokenService,
        user_id: str,
        changes: UserUpdateRequest,
        actor: User,
        ctx: RequestContext | None = None,
    ) -> User:
        """
        Administrative update.

        Role changes are audited with before/after values. Deactivation
        revokes every refresh token; outstanding access tokens die at the
        next request because the session validator re-reads is_active.
        """
        user = UserService.get_user(db, user_id)
        data = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}

        if data.get("email") and data["email"] != user.email:
            _ensure_email_free(db, data["email"], user.id)

        old_values = {field: _plain(getattr(user, field)) for field in data}
        new_values = {field: _plain(value) for field, value in data.items()}

        role_changed = "role" in data and data["role"] != user.role
        deactivated = data.get("is_active") is False and user.is_active

        for field, value in data.items():
            setattr(user, field, value)

        if role_changed:
            AuditService.record(
                db, AuditAction.ROLE_CHANGE,
                user_id=actor.id,
                entity_id=user.id,
                old_values={"role": old_values["role"]},
                new_values={"role": new_values["role"]},
                ctx=ctx
            )

        if deactivated:
            revoked = tokens.revoke_all_user_tokens(db, user.id)
            AuditService.record(
                db, AuditAction.DEACTIVATE,
                user_id=actor.id,
                entity_id=user.id,
                new_values={"revoked_sessions": revoked},
                ctx=ctx
            )

        other_changes = {k: v for k, v in new_values.items() if k not in ("role", "is_active")}
        if other_changes or (data.get("is_active") is True and old_values.get("is_active") is False):
            AuditService.record(
                db, AuditAction.USER_UPDATE,
                user_id=actor.id,
                entity_id=user.id,
                old_values={k: old_values[k] for k in new_values if k != "role"},
                new_values={k: v for k, v in new_values.items() if k != "role"},
                ctx=ctx
            )

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email already exists", field="email")

        db.refresh(user)

        logger.info(
            "User updated by administrator",
            extra={
                "user_id": user.id,
                "actor_id": actor.id,
                "fields": sorted(data),
                "role_changed": role_changed,
                "deactivated": deactivated
            }
        )
        return user
