# app/services/work_order_service.py
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.errors import DuplicateValue, InvalidTransition, ValidationError
from app.models.enums import ProgressEntryRole, WorkStatus
from app.schemas.primitives import parse_payload
from app.schemas.progress import ProgressEntry
from app.schemas.stages import WorkOrderFields, WorkOrderRecord
from app.schemas.work_proposals import WorkProposal
from app.services.attachment_service import PendingUploads, StoredUploads
from app.services.proposal_mutation import ProposalMutationService, utcnow

logger = logging.getLogger(__name__)

_REQUIRED = (
    ("work_order_number", "workOrderNumber"),
    ("date_of_work_order", "dateOfWorkOrder"),
    ("contractor_or_gram_panchayat", "contractorOrGramPanchayat"),
)


def anchor_entry(proposal: WorkProposal, requester_id: str) -> ProgressEntry:
    """Financial baseline seeded at work-order time; never shown as an update."""
    return ProgressEntry(
        role=ProgressEntryRole.ANCHOR,
        desc="Work order issued",
        sanctioned_amount=proposal.sanction_amount,
        total_amount_released_so_far=Decimal("0"),
        remaining_balance=proposal.sanction_amount,
        installments=[],
        last_updated_by=requester_id,
        created_at=utcnow(),
    )


class WorkOrderService(ProposalMutationService):
    def _check_number_free(self, db: Session, number: Optional[str], proposal_id) -> None:
        if not number:
            return
        pid = proposal_id if isinstance(proposal_id, uuid.UUID) else uuid.UUID(str(proposal_id))
        if self.store.work_order_number_taken(db, number, exclude_id=pid):
            raise DuplicateValue(f"Work order number '{number}' is already in use.")

    def create_work_order(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        requester_id: str,
        fields: Union[WorkOrderFields, Dict[str, Any]],
        uploads: Optional[PendingUploads] = None,
    ) -> WorkOrderRecord:
        """
        Issue the work order, move the proposal to `Work Order Created` and
        seed the ledger with its anchor entry.
        """
        if not isinstance(fields, WorkOrderFields):
            fields = parse_payload(WorkOrderFields, fields)

        missing = []
        for attr, wire in _REQUIRED:
            value = getattr(fields, attr)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(wire)
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}.", fields=missing)

        proposal = self.store.load(db, proposal_id)
        _require_pending_work_order(proposal)
        self._check_number_free(db, fields.work_order_number, proposal.id)
        self.attachments.validate(uploads)

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> WorkOrderRecord:
            _require_pending_work_order(proposal)
            now = utcnow()
            record = WorkOrderRecord(
                work_order_number=fields.work_order_number,
                date_of_work_order=fields.date_of_work_order,
                contractor_or_gram_panchayat=fields.contractor_or_gram_panchayat,
                remark=fields.remark,
                issued_by=requester_id,
                last_modified_by=requester_id,
                attached_file=stored.document,
                attached_images=stored.images,
                created_at=now,
                updated_at=now,
            )
            proposal.work_order = record
            proposal.current_status = WorkStatus.WORK_ORDER_CREATED
            proposal.last_status_update = now
            # index 0 is reserved for the anchor
            if not proposal.work_progress:
                proposal.work_progress.append(anchor_entry(proposal, requester_id))
            return record

        record = self._mutate(
            db, proposal_id=proposal_id, mutate=mutate, uploads=uploads,
            folder=f"work-proposals/{proposal_id}/work-order",
        )
        logger.info(
            "Work order created",
            extra={"proposalId": str(proposal_id), "workOrderNumber": record.work_order_number, "actor": requester_id},
        )
        return record

    def update_work_order(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        requester_id: str,
        fields: Union[WorkOrderFields, Dict[str, Any]],
        uploads: Optional[PendingUploads] = None,
    ) -> WorkOrderRecord:
        if not isinstance(fields, WorkOrderFields):
            fields = parse_payload(WorkOrderFields, fields)
        changes = fields.model_dump(exclude_unset=True)

        proposal = self.store.load(db, proposal_id)
        if proposal.work_order is None:
            raise ValidationError("Work order has not been created.", fields=["workOrder"])
        if "work_order_number" in changes and not (changes["work_order_number"] or "").strip():
            raise ValidationError("Work order number cannot be blank.", fields=["workOrderNumber"])
        self._check_number_free(db, changes.get("work_order_number"), proposal.id)
        self.attachments.validate(uploads)
        replaced: List = []

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> WorkOrderRecord:
            record = proposal.work_order
            if record is None:
                raise ValidationError("Work order has not been created.", fields=["workOrder"])
            for key, value in changes.items():
                setattr(record, key, value)
            replaced.clear()
            if stored.document:
                if record.attached_file:
                    replaced.append(record.attached_file)
                record.attached_file = stored.document
            record.attached_images = list(record.attached_images) + stored.images
            record.last_modified_by = requester_id
            record.updated_at = utcnow()
            return record

        record = self._mutate(
            db, proposal_id=proposal_id, mutate=mutate, uploads=uploads,
            folder=f"work-proposals/{proposal_id}/work-order",
        )
        self.attachments.discard(replaced)
        logger.info("Work order updated", extra={"proposalId": str(proposal_id), "actor": requester_id})
        return record


def _require_pending_work_order(proposal: WorkProposal) -> None:
    if proposal.current_status != WorkStatus.PENDING_WORK_ORDER:
        raise InvalidTransition(
            f"Proposal is in '{proposal.current_status.value}', expected '{WorkStatus.PENDING_WORK_ORDER.value}'.",
            fields=["currentStatus"],
        )
