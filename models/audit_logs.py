import enum

from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey, JSON, Enum
from utils.tokens import utcnow


class AuditAction(str, enum.Enum):
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    TOKEN_REFRESH = "token_refresh"
    REGISTER = "register"
    ROLE_CHANGE = "role_change"
    USER_UPDATE = "user_update"
    DEACTIVATE = "deactivate"
    PASSWORD_RESET_REQUEST = "password_reset_request"
    PASSWORD_RESET = "password_reset"
    PASSWORD_CHANGE = "password_change"
    CLIENT_EVENT = "client_event"


class AuditLog(Base):
    """Append-only record of a security-relevant action."""
    __tablename__ = "audit_logs"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(
        Enum(AuditAction, native_enum=False, length=40, values_callable=lambda actions: [a.value for a in actions]),
        nullable=False,
        index=True
    )
    entity_type = Column(String(50), nullable=False, default="user")
    entity_id = Column(String(36), nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
