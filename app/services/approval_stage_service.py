# app/services/approval_stage_service.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument, ValidationError
from app.core.status_graph import APPROVAL_PHASE_STATUSES
from app.models.enums import ApprovalAction, ApprovalStage, ApprovalStatus, WorkStatus
from app.schemas.primitives import parse_payload
from app.schemas.stages import ApprovalDecisionFields, ApprovalRecord
from app.schemas.work_proposals import WorkProposal
from app.services.attachment_service import PendingUploads, StoredUploads
from app.services.proposal_mutation import ProposalMutationService, utcnow

logger = logging.getLogger(__name__)

_STAGE_ATTR = {
    ApprovalStage.TECHNICAL: "technical_approval",
    ApprovalStage.ADMINISTRATIVE: "administrative_approval",
}

# (stage, action) -> [(python attr, wire name)]
_REQUIRED_FIELDS = {
    (ApprovalStage.TECHNICAL, ApprovalAction.APPROVE): [
        ("approval_number", "approvalNumber"),
    ],
    (ApprovalStage.ADMINISTRATIVE, ApprovalAction.APPROVE): [
        ("approval_number", "approvalNumber"),
        ("approved_amount", "approvedAmount"),
        ("govt_district_as", "govtDistrictAS"),
    ],
    (ApprovalStage.TECHNICAL, ApprovalAction.REJECT): [
        ("rejection_reason", "rejectionReason"),
    ],
    (ApprovalStage.ADMINISTRATIVE, ApprovalAction.REJECT): [
        ("rejection_reason", "rejectionReason"),
    ],
}


def _parse_enum(enum_cls, raw, field: str):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise InvalidArgument(f"'{raw}' is not one of: {allowed}.", fields=[field])


def missing_fields(stage: ApprovalStage, action: ApprovalAction, fields: ApprovalDecisionFields) -> List[str]:
    missing = []
    for attr, wire in _REQUIRED_FIELDS[(stage, action)]:
        value = getattr(fields, attr)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(wire)
    return missing


def _implied_status(proposal: WorkProposal, stage: ApprovalStage, action: ApprovalAction) -> WorkStatus:
    if stage == ApprovalStage.TECHNICAL:
        if action == ApprovalAction.APPROVE:
            return WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL
        return WorkStatus.REJECTED_TECHNICAL_APPROVAL
    if action == ApprovalAction.APPROVE:
        return WorkStatus.PENDING_TENDER if proposal.is_tender_required else WorkStatus.PENDING_WORK_ORDER
    return WorkStatus.REJECTED_ADMINISTRATIVE_APPROVAL


def _technical_approved(proposal: WorkProposal) -> bool:
    ta = proposal.technical_approval
    return ta is not None and ta.status == ApprovalStatus.APPROVED


class ApprovalStageService(ProposalMutationService):
    """
    Technical and administrative approval decisions.

    A decision overwrites the stage record (no history). Attachments merge:
    a new document replaces the old one, new images are appended.
    """

    def decide(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        stage: Union[str, ApprovalStage],
        action: Union[str, ApprovalAction],
        fields: Union[ApprovalDecisionFields, Dict[str, Any], None],
        requester_id: str,
        uploads: Optional[PendingUploads] = None,
    ) -> ApprovalRecord:
        stage = _parse_enum(ApprovalStage, stage, "stage")
        action = _parse_enum(ApprovalAction, action, "action")
        if not isinstance(fields, ApprovalDecisionFields):
            fields = parse_payload(ApprovalDecisionFields, fields or {})

        missing = missing_fields(stage, action, fields)
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}.", fields=missing)

        def check_prerequisites(proposal: WorkProposal) -> None:
            if stage == ApprovalStage.ADMINISTRATIVE and not _technical_approved(proposal):
                raise ValidationError(
                    "Technical approval must be granted before an administrative decision.",
                    fields=["technicalApproval"],
                )

        check_prerequisites(self.store.load(db, proposal_id))
        self.attachments.validate(uploads)

        attr = _STAGE_ATTR[stage]
        replaced: List = []

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> ApprovalRecord:
            check_prerequisites(proposal)
            prior: Optional[ApprovalRecord] = getattr(proposal, attr)
            now = utcnow()
            approved = action == ApprovalAction.APPROVE

            record = ApprovalRecord(
                status=ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED,
                approval_number=fields.approval_number if approved else None,
                approved_by=requester_id,
                approval_date=now,
                remarks=fields.remarks,
                rejection_reason=None if approved else fields.rejection_reason,
                attached_file=stored.document or (prior.attached_file if prior else None),
                attached_images=(list(prior.attached_images) if prior else []) + stored.images,
                created_at=prior.created_at if prior else now,
                updated_at=now,
            )
            if stage == ApprovalStage.TECHNICAL:
                record.amount_of_technical_sanction = fields.amount_of_technical_sanction
            else:
                record.approved_amount = fields.approved_amount
                record.govt_district_as = fields.govt_district_as

            replaced.clear()
            if stored.document and prior and prior.attached_file:
                replaced.append(prior.attached_file)

            setattr(proposal, attr, record)
            if proposal.current_status in APPROVAL_PHASE_STATUSES:
                proposal.current_status = _implied_status(proposal, stage, action)
                proposal.last_status_update = now
            return record

        record = self._mutate(
            db,
            proposal_id=proposal_id,
            mutate=mutate,
            uploads=uploads,
            folder=f"work-proposals/{proposal_id}/{stage.value}-approval",
        )
        # replaced document is no longer referenced by anything
        self.attachments.discard(replaced)

        logger.info(
            "Approval decided",
            extra={
                "proposalId": str(proposal_id),
                "stage": stage.value,
                "action": action.value,
                "actor": requester_id,
            },
        )
        return record
