# app/services/proposals_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from app.models.enums import WorkStatus
from app.schemas.primitives import parse_payload
from app.schemas.work_proposals import ProposalCreateRequest, WorkProposal
from app.services.proposal_store import ProposalStore, run_with_retry

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _serial_number(year: int, seq: int) -> str:
    return f"WP{year}{seq:06d}"


class ProposalsService:
    def __init__(self, store: Optional[ProposalStore] = None):
        self.store = store or ProposalStore()

    def create(
        self,
        db: Session,
        *,
        payload: Union[ProposalCreateRequest, Dict[str, Any]],
        submitted_by: str,
    ) -> WorkProposal:
        """
        Register a proposal in `Pending Technical Approval`.
        Serial numbers are sequential per table; a clash from a concurrent
        insert is retried with the next number.
        """
        if not isinstance(payload, ProposalCreateRequest):
            payload = parse_payload(ProposalCreateRequest, payload)

        def attempt() -> WorkProposal:
            now = _now()
            proposal = WorkProposal(
                **payload.model_dump(),
                id=uuid.uuid4(),
                serial_number=_serial_number(now.year, self.store.count(db) + 1),
                submitted_by=submitted_by,
                submission_date=now,
                current_status=WorkStatus.PENDING_TECHNICAL_APPROVAL,
                last_status_update=now,
            )
            return self.store.insert(db, proposal)

        proposal = run_with_retry(attempt, attempts=3)
        logger.info(
            "Work proposal registered",
            extra={"proposalId": str(proposal.id), "serialNumber": proposal.serial_number, "actor": submitted_by},
        )
        return proposal

    def get(self, db: Session, proposal_id: Union[str, uuid.UUID]) -> WorkProposal:
        return self.store.load(db, proposal_id)
