import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth_deps import require_role
from app.core.errors import NotFound
from app.db.session import get_db
from app.schemas.audit import AuditLogListResponse, AuditLogRecordResponse
from app.services.audit_service import list_audit_events

router = APIRouter(prefix="/work-proposals")


# Admin-only: no extra role is listed, so only ADMIN / SUPER_ADMIN pass.
@router.get("/{proposal_id}/audit", response_model=AuditLogListResponse)
def get_audit_log(
    proposal_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_role()),
):
    try:
        pid = uuid.UUID(proposal_id)
    except ValueError:
        # rendered by the app-level WorkflowError handler
        raise NotFound("Work proposal not found.")

    records = [AuditLogRecordResponse.model_validate(r) for r in list_audit_events(db, pid)]
    return AuditLogListResponse(proposal_id=str(pid), records=records)
