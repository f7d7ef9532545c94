from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from models.audit_logs import AuditAction
from schemas.auth_schemas import CamelModel


class AuditLogOut(CamelModel):
    id: int
    user_id: Optional[str] = None
    action: AuditAction
    entity_type: str
    entity_id: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime


class AuditLogPage(CamelModel):
    results: list[AuditLogOut]
    count: int
    next: Optional[int] = None
    previous: Optional[int] = None


class AuditLogIn(CamelModel):
    """One client-reported event. Omitted user, IP and agent come from the caller."""
    action: str = Field(min_length=1, max_length=100)
    entity_type: str = Field(default="client", min_length=1, max_length=50)
    entity_id: Optional[str] = Field(default=None, max_length=36)
    user_id: Optional[str] = Field(default=None, max_length=36)
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = Field(default=None, max_length=45)
    user_agent: Optional[str] = None


class AuditBatchRequest(CamelModel):
    logs: list[AuditLogIn] = Field(default_factory=list, max_length=500)


class AuditBatchResponse(CamelModel):
    message: str
    count: int
