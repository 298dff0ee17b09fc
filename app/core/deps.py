# /app/core/deps.py
from fastapi import Depends

from app.core.config import get_settings
from app.services.approval_stage_service import ApprovalStageService
from app.services.attachment_service import AttachmentService
from app.services.object_store import ObjectStore, get_object_store
from app.services.progress_ledger_service import ProgressLedgerService
from app.services.proposals_service import ProposalsService
from app.services.tender_service import TenderService
from app.services.work_order_service import WorkOrderService

# Service providers. Tests swap the object store (or a whole service) via
# app.dependency_overrides.


def get_attachment_service(store: ObjectStore = Depends(get_object_store)) -> AttachmentService:
    return AttachmentService.from_settings(get_settings(), store=store)


def get_proposals_service() -> ProposalsService:
    return ProposalsService()


def get_ledger_service(
    attachments: AttachmentService = Depends(get_attachment_service),
) -> ProgressLedgerService:
    return ProgressLedgerService(attachments=attachments)


def get_approval_service(
    attachments: AttachmentService = Depends(get_attachment_service),
) -> ApprovalStageService:
    return ApprovalStageService(attachments=attachments)


def get_tender_service(
    attachments: AttachmentService = Depends(get_attachment_service),
) -> TenderService:
    return TenderService(attachments=attachments)


def get_work_order_service(
    attachments: AttachmentService = Depends(get_attachment_service),
) -> WorkOrderService:
    return WorkOrderService(attachments=attachments)
