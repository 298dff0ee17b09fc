# app/services/proposal_store.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, DuplicateValue, NotFound
from app.models.work_proposal import WorkProposalRecord
from app.schemas.work_proposals import WorkProposal

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_uuid(proposal_id: Union[str, uuid.UUID]) -> Optional[uuid.UUID]:
    if isinstance(proposal_id, uuid.UUID):
        return proposal_id
    try:
        return uuid.UUID(str(proposal_id))
    except ValueError:
        return None


def _doc(model) -> Optional[Dict[str, Any]]:
    return model.to_document() if model is not None else None


def _row_values(p: WorkProposal) -> Dict[str, Any]:
    return {
        "serial_number": p.serial_number,
        "name_of_work": p.name_of_work,
        "work_description": p.work_description,
        "type_of_work": p.type_of_work,
        "work_agency": p.work_agency,
        "scheme": p.scheme,
        "work_department": p.work_department,
        "approving_department": p.approving_department,
        "financial_year": p.financial_year,
        "sanction_amount": p.sanction_amount,
        "city": p.city,
        "ward": p.ward,
        "type_of_location": p.type_of_location,
        "assembly": p.assembly,
        "latitude": p.latitude,
        "longitude": p.longitude,
        "appointed_engineer_id": p.appointed_engineer,
        "appointed_sdo": p.appointed_sdo,
        "is_tender_required": p.is_tender_required,
        "submitted_by": p.submitted_by,
        "submission_date": p.submission_date,
        "estimated_completion_date": p.estimated_completion_date,
        "current_status": p.current_status.value,
        "last_status_update": p.last_status_update,
        "technical_approval_json": _doc(p.technical_approval),
        "administrative_approval_json": _doc(p.administrative_approval),
        "tender_process_json": _doc(p.tender_process),
        "work_order_json": _doc(p.work_order),
        "work_progress_json": [e.to_document() for e in p.work_progress],
        "work_order_number": p.work_order.work_order_number if p.work_order else None,
    }


def _to_aggregate(row: WorkProposalRecord) -> WorkProposal:
    return WorkProposal.model_validate(
        {
            "id": row.id,
            "serial_number": row.serial_number,
            "name_of_work": row.name_of_work,
            "work_description": row.work_description,
            "type_of_work": row.type_of_work,
            "work_agency": row.work_agency,
            "scheme": row.scheme,
            "work_department": row.work_department,
            "approving_department": row.approving_department,
            "financial_year": row.financial_year,
            "sanction_amount": row.sanction_amount,
            "city": row.city,
            "ward": row.ward,
            "type_of_location": row.type_of_location,
            "assembly": row.assembly,
            "latitude": row.latitude,
            "longitude": row.longitude,
            "appointed_engineer": row.appointed_engineer_id,
            "appointed_sdo": row.appointed_sdo,
            "is_tender_required": row.is_tender_required,
            "submitted_by": row.submitted_by,
            "submission_date": row.submission_date,
            "estimated_completion_date": row.estimated_completion_date,
            "current_status": row.current_status,
            "last_status_update": row.last_status_update,
            "technical_approval": row.technical_approval_json,
            "administrative_approval": row.administrative_approval_json,
            "tender_process": row.tender_process_json,
            "work_order": row.work_order_json,
            "work_progress": row.work_progress_json or [],
            "version": row.version,
        }
    )


class ProposalStore:
    """
    Loads and saves whole proposal aggregates.

    save() is a compare-and-swap on `version`: a writer that loaded a stale
    copy gets Conflict instead of overwriting someone else's change.
    """

    def find(self, db: Session, proposal_id: Union[str, uuid.UUID]) -> Optional[WorkProposal]:
        pid = _as_uuid(proposal_id)
        if pid is None:
            return None
        row = db.get(WorkProposalRecord, pid, populate_existing=True)
        return _to_aggregate(row) if row is not None else None

    def load(self, db: Session, proposal_id: Union[str, uuid.UUID]) -> WorkProposal:
        proposal = self.find(db, proposal_id)
        if proposal is None:
            raise NotFound(f"Work proposal {proposal_id} not found.")
        return proposal

    def insert(self, db: Session, proposal: WorkProposal) -> WorkProposal:
        row = WorkProposalRecord(id=proposal.id, version=1, **_row_values(proposal))
        db.add(row)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise Conflict("Work proposal clashes with an existing serial or work order number.") from e
        proposal.version = 1
        return proposal

    def save(self, db: Session, proposal: WorkProposal) -> WorkProposal:
        expected = proposal.version
        stmt = (
            update(WorkProposalRecord)
            .where(
                WorkProposalRecord.id == proposal.id,
                WorkProposalRecord.version == expected,
            )
            .values(**_row_values(proposal), version=expected + 1, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            if result.rowcount != 1:
                db.rollback()
                raise Conflict(f"Work proposal {proposal.id} was modified concurrently.")
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicateValue("Work order number is already used by another proposal.") from e

        proposal.version = expected + 1
        return proposal

    def count(self, db: Session) -> int:
        return db.execute(select(func.count()).select_from(WorkProposalRecord)).scalar_one()

    def work_order_number_taken(
        self,
        db: Session,
        number: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> bool:
        q = select(WorkProposalRecord.id).where(WorkProposalRecord.work_order_number == number)
        if exclude_id is not None:
            q = q.where(WorkProposalRecord.id != exclude_id)
        return db.execute(q).first() is not None


def run_with_retry(operation: Callable[[], T], *, attempts: int) -> T:
    """
    Re-run a load-mutate-save operation while it loses the version race.
    Non-retryable conflicts and any other error propagate immediately.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Conflict as e:
            if not e.retryable or attempt == attempts:
                raise
            logger.warning("Retrying after write conflict (attempt %s/%s): %s", attempt, attempts, e)
    raise AssertionError("unreachable")
