from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models.audit_logs import AuditAction, AuditLog
from models.users import User
from schemas.audit_schemas import AuditLogIn
from utils.logger import get_logger, sanitize_log_data
from utils.tokens import as_utc

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Where a request came from, for the audit trail."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def _to_utc(value: datetime) -> datetime:
    # Rows hold UTC; naive bounds are taken as UTC already
    return as_utc(value).astimezone(timezone.utc)


class AuditService:

    @staticmethod
    def record(
        db: Session,
        action: AuditAction,
        *,
        user_id: Optional[str] = None,
        entity_type: str = "user",
        entity_id: Optional[str] = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        ctx: Optional[RequestContext] = None,
    ) -> AuditLog:
        """
        Stage an audit row on `db` and emit the matching structured log line.

        The row commits with the caller's transaction, so an action and its
        audit record land together or not at all.
        """
        ctx = ctx or RequestContext()
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id if entity_id is not None else user_id,
            old_values=sanitize_log_data(old_values) if old_values else None,
            new_values=sanitize_log_data(new_values) if new_values else None,
            ip_address=ctx.ip_address,
            user_agent=(ctx.user_agent or "")[:255] or None,
        )
        db.add(entry)

        logger.info(
            f"audit: {action.value}",
            extra={
                "audit_action": action.value,
                "user_id": user_id,
                "entity_type": entity_type,
                "entity_id": entry.entity_id,
                "client_ip": ctx.ip_address,
            }
        )
        return entry

    @staticmethod
    def record_batch(
        db: Session,
        entries: list[AuditLogIn],
        actor: User,
        ctx: Optional[RequestContext] = None,
    ) -> int:
        """
        Store client-reported events in one transaction. Returns the count.

        Entries fall back to the caller for user, IP and user agent. Actions
        outside AuditAction are stored as CLIENT_EVENT with the reported
        name kept under new_values["client_action"].

        Raises:
            ValidationError: empty batch, or an entry naming an unknown user
        """
        if not entries:
            raise ValidationError("logs array is required", field="logs")

        ctx = ctx or RequestContext()
        named_users = {e.user_id for e in entries if e.user_id and e.user_id != actor.id}
        if named_users:
            found = {row.id for row in db.query(User.id).filter(User.id.in_(named_users))}
            if named_users - found:
                raise ValidationError("Unknown user in audit batch", field="userId")

        for entry in entries:
            new_values = entry.new_values
            try:
                action = AuditAction(entry.action)
            except ValueError:
                action = AuditAction.CLIENT_EVENT
                new_values = {**(new_values or {}), "client_action": entry.action}

            AuditService.record(
                db,
                action,
                user_id=entry.user_id or actor.id,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                old_values=entry.old_values,
                new_values=new_values,
                ctx=RequestContext(
                    ip_address=entry.ip_address or ctx.ip_address,
                    user_agent=entry.user_agent or ctx.user_agent
                )
            )

        db.commit()
        logger.info("Audit batch stored", extra={"user_id": actor.id, "count": len(entries)})
        return len(entries)

    @staticmethod
    def list_logs(
        db: Session,
        *,
        user_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[AuditLog], int]:
        """Newest first. Returns (page of rows, total matching)."""
        query = db.query(AuditLog)

        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action == action)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.filter(AuditLog.entity_id == entity_id)
        if start_date:
            query = query.filter(AuditLog.timestamp >= _to_utc(start_date))
        if end_date:
            query = query.filter(AuditLog.timestamp <= _to_utc(end_date))

        total = query.count()
        rows = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()

        return rows, total

    @staticmethod
    def get_log(db: Session, log_id: int) -> AuditLog:
        entry = db.get(AuditLog, log_id)
        if entry is None:
            raise NotFoundError("Audit log not found")
        return entry
