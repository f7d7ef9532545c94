from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, Request
from starlette import status

from middleware.rate_limiter import limiter
from models.audit_logs import AuditAction
from routers.users import page_links
from schemas.audit_schemas import AuditBatchRequest, AuditBatchResponse, AuditLogOut, AuditLogPage
from services.audit_service import AuditService
from utils.deps import admin_dependency, context_dependency, db_dependency, user_dependency
from utils.response import render, style_dependency


router = APIRouter(tags=["audit"])


@router.post("/logs/batch")
@router.post("/logs/batch/", include_in_schema=False)
@limiter.limit("30/minute")
def create_audit_logs(
    request: Request,
    body: AuditBatchRequest,
    user: user_dependency,
    db: db_dependency,
    ctx: context_dependency,
    style: style_dependency,
):
    """
    Record client-side events (record views, exports and the like).
    Any signed-in user may report; entries default to the caller.
    """
    count = AuditService.record_batch(db, body.logs, user, ctx)
    return render(
        AuditBatchResponse(message=f"{count} audit logs created", count=count),
        style,
        status.HTTP_201_CREATED
    )


@router.get("/")
@router.get("/logs", include_in_schema=False)
@router.get("/logs/", include_in_schema=False)
def list_audit_logs(
    request: Request,
    admin: admin_dependency,
    db: db_dependency,
    style: style_dependency,
    user_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
):
    """
    Audit trail, newest first (administrators only).
    """
    rows, total = AuditService.list_logs(
        db,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit
    )
    next_page, previous_page = page_links(page, limit, total)

    return render(AuditLogPage(
        results=[AuditLogOut.model_validate(row) for row in rows],
        count=total,
        next=next_page,
        previous=previous_page
    ), style)


@router.get("/{log_id}")
@router.get("/logs/{log_id}", include_in_schema=False)
def get_audit_log(request: Request, log_id: int, admin: admin_dependency, db: db_dependency, style: style_dependency):
    entry = AuditService.get_log(db, log_id)
    return render(AuditLogOut.model_validate(entry), style)
