from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.requests import Request

from app.core.hashing import normalise_summary, summary_hash
from app.models.audit_log import AuditLogRecord
from app.policies.rbac import CurrentUser


class AuditAction:
    PROPOSAL_CREATED = "PROPOSAL_CREATED"

    # Progress ledger
    PROGRESS_APPENDED = "PROGRESS_APPENDED"
    PROGRESS_REMOVED = "PROGRESS_REMOVED"
    STATUS_SET = "STATUS_SET"

    # Approval stages
    TECHNICAL_DECIDED = "TECHNICAL_DECIDED"
    ADMINISTRATIVE_DECIDED = "ADMINISTRATIVE_DECIDED"

    # Tender / work order
    TENDER_STARTED = "TENDER_STARTED"
    TENDER_UPDATED = "TENDER_UPDATED"
    TENDER_AWARDED = "TENDER_AWARDED"
    WORK_ORDER_CREATED = "WORK_ORDER_CREATED"
    WORK_ORDER_UPDATED = "WORK_ORDER_UPDATED"


def audit_event(
    db: Session,
    *,
    request: Request,
    actor: CurrentUser,
    proposal_id: uuid.UUID,
    action: str,
    payload_summary: Dict[str, Any],
    status: str = "ok",
    ref_id: Optional[str] = None,
) -> AuditLogRecord:
    """
    Append-only audit record insert.

    payload_summary MUST be safe: field values and attachment counts only,
    never file contents. The hash is over the canonical summary.
    """
    rid = getattr(request.state, "request_id", None) or "missing"
    summary = normalise_summary(payload_summary)

    row = AuditLogRecord(
        created_at=datetime.now(timezone.utc),
        request_id=rid,
        route=str(request.url.path),
        method=request.method,
        actor_user_id=actor.id,
        actor_role=actor.role.value,
        proposal_id=proposal_id,
        action=action,
        status=status,
        payload_hash=summary_hash(summary),
        payload_summary_json=summary,
        ref_id=ref_id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_audit_events(db: Session, proposal_id: uuid.UUID) -> List[AuditLogRecord]:
    return list(
        db.execute(
            select(AuditLogRecord)
            .where(AuditLogRecord.proposal_id == proposal_id)
            .order_by(AuditLogRecord.created_at)
        ).scalars()
    )
