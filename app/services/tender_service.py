# app/services/tender_service.py
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument, InvalidTransition, ValidationError
from app.models.enums import TenderStatus, WorkStatus
from app.schemas.primitives import parse_payload
from app.schemas.stages import SelectedContractor, TenderAwardRequest, TenderFields, TenderRecord
from app.schemas.work_proposals import WorkProposal
from app.services.attachment_service import PendingUploads, StoredUploads
from app.services.proposal_mutation import ProposalMutationService, utcnow

logger = logging.getLogger(__name__)


def _require_status(proposal: WorkProposal, expected: WorkStatus) -> None:
    if proposal.current_status != expected:
        raise InvalidTransition(
            f"Proposal is in '{proposal.current_status.value}', expected '{expected.value}'.",
            fields=["currentStatus"],
        )


def _parse_tender_status(raw: str) -> TenderStatus:
    try:
        return TenderStatus(raw)
    except ValueError:
        allowed = ", ".join(s.value for s in TenderStatus)
        raise InvalidArgument(f"Tender status must be one of: {allowed}.", fields=["tenderStatus"])


def _merge_uploads(record: TenderRecord, stored: StoredUploads, replaced: List) -> None:
    if stored.document:
        if record.attached_file:
            replaced.append(record.attached_file)
        record.attached_file = stored.document
    record.attached_images = list(record.attached_images) + stored.images


class TenderService(ProposalMutationService):
    """Tender stage: start -> (update)* -> award."""

    def start_tender(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        requester_id: str,
        fields: Union[TenderFields, Dict[str, Any]],
        uploads: Optional[PendingUploads] = None,
    ) -> TenderRecord:
        if not isinstance(fields, TenderFields):
            fields = parse_payload(TenderFields, fields)

        missing = [wire for attr, wire in (("tender_title", "tenderTitle"), ("tender_id", "tenderId"))
                   if not (getattr(fields, attr) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}.", fields=missing)

        def check(proposal: WorkProposal) -> None:
            if not proposal.is_tender_required:
                raise InvalidTransition("This proposal does not require a tender.", fields=["isTenderRequired"])
            _require_status(proposal, WorkStatus.PENDING_TENDER)

        check(self.store.load(db, proposal_id))
        self.attachments.validate(uploads)

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> TenderRecord:
            check(proposal)
            now = utcnow()
            record = TenderRecord(
                tender_title=fields.tender_title,
                tender_id=fields.tender_id,
                department=fields.department,
                issued_date=fields.issued_date or now,
                remark=fields.remark,
                tender_status=TenderStatus.NOTICE_PUBLISHED,
                last_modified_by=requester_id,
                attached_file=stored.document,
                attached_images=stored.images,
                created_at=now,
                updated_at=now,
            )
            proposal.tender_process = record
            proposal.current_status = WorkStatus.TENDER_IN_PROGRESS
            proposal.last_status_update = now
            return record

        record = self._mutate(
            db, proposal_id=proposal_id, mutate=mutate, uploads=uploads,
            folder=f"work-proposals/{proposal_id}/tender",
        )
        logger.info("Tender started", extra={"proposalId": str(proposal_id), "actor": requester_id})
        return record

    def update_tender(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        requester_id: str,
        fields: Union[TenderFields, Dict[str, Any]],
        uploads: Optional[PendingUploads] = None,
    ) -> TenderRecord:
        if not isinstance(fields, TenderFields):
            fields = parse_payload(TenderFields, fields)
        new_status = _parse_tender_status(fields.tender_status) if fields.tender_status else None
        changes = fields.model_dump(exclude_unset=True, exclude={"tender_status"})

        def check(proposal: WorkProposal) -> None:
            if proposal.tender_process is None:
                raise ValidationError("Tender process has not been started.", fields=["tenderProcess"])

        check(self.store.load(db, proposal_id))
        self.attachments.validate(uploads)
        replaced: List = []

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> TenderRecord:
            check(proposal)
            record = proposal.tender_process
            for key, value in changes.items():
                setattr(record, key, value)
            if new_status is not None:
                record.tender_status = new_status
            replaced.clear()
            _merge_uploads(record, stored, replaced)
            record.last_modified_by = requester_id
            record.updated_at = utcnow()
            return record

        record = self._mutate(
            db, proposal_id=proposal_id, mutate=mutate, uploads=uploads,
            folder=f"work-proposals/{proposal_id}/tender",
        )
        self.attachments.discard(replaced)
        logger.info("Tender updated", extra={"proposalId": str(proposal_id), "actor": requester_id})
        return record

    def award_tender(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        requester_id: str,
        award: Union[TenderAwardRequest, Dict[str, Any]],
    ) -> TenderRecord:
        if not isinstance(award, TenderAwardRequest):
            award = parse_payload(TenderAwardRequest, award)

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> TenderRecord:
            _require_status(proposal, WorkStatus.TENDER_IN_PROGRESS)
            now = utcnow()
            record = proposal.tender_process or TenderRecord(created_at=now)
            record.selected_contractor = SelectedContractor(
                name=award.contractor_name,
                contact_info=award.contact_info,
                awarded_amount=Decimal(award.awarded_amount),
            )
            record.tender_status = TenderStatus.AWARDED
            record.last_modified_by = requester_id
            record.updated_at = now
            proposal.tender_process = record
            proposal.current_status = WorkStatus.PENDING_WORK_ORDER
            proposal.last_status_update = now
            return record

        record = self._mutate(
            db, proposal_id=proposal_id, mutate=mutate,
            folder=f"work-proposals/{proposal_id}/tender",
        )
        logger.info(
            "Tender awarded",
            extra={"proposalId": str(proposal_id), "contractor": award.contractor_name, "actor": requester_id},
        )
        return record
