from models.users import User, UserRole
from models.refresh_tokens import RefreshToken
from models.password_reset_tokens import PasswordResetToken
from models.audit_logs import AuditLog, AuditAction

__all__ = ["User", "UserRole", "RefreshToken", "PasswordResetToken", "AuditLog", "AuditAction"]
