from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import DuplicateUserError, InvalidCredentialsError
from models.audit_logs import AuditAction
from models.users import User
from schemas.auth_schemas import RegisterRequest
from services.audit_service import AuditService, RequestContext
from services.token_service import TokenService
from utils.hashing import get_password_hash, password_hasher, verify_password
from utils.logger import get_logger
from utils.tokens import utcnow

logger = get_logger(__name__)


def conflicting_field(exc: IntegrityError) -> str:
    """Best-effort name of the unique column an IntegrityError tripped on."""
    message = str(exc.orig).lower()
    if "email" in message:
        return "email"
    return "username"


class AuthService:

    @staticmethod
    def authenticate_user(db: Session, identifier: str, password: str) -> User:
        """
        Resolve a username-or-email plus password to an active user.

        Unknown user, wrong password and inactive account all raise the
        same InvalidCredentialsError, and an unknown user still pays for
        one bcrypt verification.
        """
        user = db.query(User).filter(
            or_(User.username == identifier, User.email == identifier.strip().lower())
        ).first()

        if not user:
            password_hasher.dummy_verify(password)
            logger.warning(
                "Login failed - user not found",
                extra={"identifier": identifier}
            )
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id}
            )
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(
                "Login failed - inactive account",
                extra={"user_id": user.id}
            )
            raise InvalidCredentialsError()

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id}
        )
        return user

    @staticmethod
    def login(
        db: Session,
        tokens: TokenService,
        identifier: str,
        password: str,
        ctx: RequestContext | None = None,
    ) -> tuple[User, dict]:
        """
        Authenticate and open a session: stamp last_login_at, issue an
        access/refresh pair and audit the attempt either way.
        """
        try:
            user = AuthService.authenticate_user(db, identifier, password)
        except InvalidCredentialsError:
            AuditService.record(
                db, AuditAction.LOGIN_FAILED,
                entity_id=None,
                new_values={"identifier": identifier},
                ctx=ctx
            )
            db.commit()
            raise

        user.last_login_at = utcnow()
        pair = tokens.create_token_pair(db, user)
        AuditService.record(db, AuditAction.LOGIN, user_id=user.id, ctx=ctx)
        db.commit()
        db.refresh(user)

        logger.info(
            "User logged in successfully",
            extra={"user_id": user.id}
        )
        return user, pair

    @staticmethod
    def register_user(
        db: Session,
        request: RegisterRequest,
        actor: User,
        ctx: RequestContext | None = None,
    ) -> User:
        """
        Create a user on behalf of an administrator.

        The OR lookup gives a friendly 409 naming the clashing field; the
        unique constraints stay the real guard, so a commit-time
        IntegrityError maps to the same error.
        """
        existing = db.query(User).filter(
            or_(User.username == request.username, User.email == request.email)
        ).first()

        if existing:
            field = "username" if existing.username == request.username else "email"
            logger.warning(
                "Registration rejected - duplicate",
                extra={"field": field, "actor_id": actor.id}
            )
            raise DuplicateUserError(f"{field.capitalize()} already exists", field=field)

        user = User(
            username=request.username,
            email=request.email,
            password_hash=get_password_hash(request.password),
            role=request.role,
            first_name=request.first_name,
            last_name=request.last_name,
            phone_number=request.phone_number,
            must_change_password=True
        )
        db.add(user)

        try:
            db.flush()
            AuditService.record(
                db, AuditAction.REGISTER,
                user_id=actor.id,
                entity_id=user.id,
                new_values={"username": user.username, "email": user.email, "role": request.role.value},
                ctx=ctx
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            field = conflicting_field(exc)
            raise DuplicateUserError(f"{field.capitalize()} already exists", field=field)

        db.refresh(user)

        logger.info(
            "User registered successfully",
            extra={"user_id": user.id, "role": request.role.value, "actor_id": actor.id}
        )
        return user

    @staticmethod
    def get_active_user_by_id(db: Session, user_id: str) -> User | None:
        return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).one_or_none()
