# app/api/v1/work_proposals.py
from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_user, require_role
from app.core.config import get_settings
from app.core.deps import (
    get_approval_service,
    get_ledger_service,
    get_proposals_service,
    get_tender_service,
    get_work_order_service,
)
from app.core.errors import ValidationError, WorkflowError
from app.db.session import get_db
from app.models.enums import ApprovalStage
from app.policies.rbac import (
    ADMINISTRATIVE_APPROVERS,
    PROGRESS_WRITERS,
    PROPOSAL_SUBMITTERS,
    TECHNICAL_APPROVERS,
    TENDER_MANAGERS,
    WORK_ORDER_MANAGERS,
    CurrentUser,
)
from app.schemas.progress import ProgressEntry
from app.schemas.stages import ApprovalRecord, TenderAwardRequest, TenderRecord, WorkOrderRecord
from app.schemas.work_proposals import (
    ImageRef,
    ProgressListResponse,
    ProposalCreateRequest,
    ProposalDetailResponse,
    StatusUpdateRequest,
    WorkProposal,
)
from app.services.approval_stage_service import ApprovalStageService
from app.services.attachment_service import PendingUploads, UploadedFile
from app.services.audit_service import AuditAction, audit_event
from app.services.progress_ledger_service import ProgressLedgerService
from app.services.proposal_view_service import collect_images, parse_selector, select_view
from app.services.proposals_service import ProposalsService
from app.services.tender_service import TenderService
from app.services.work_order_service import WorkOrderService

router = APIRouter(prefix="/work-proposals")


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def _http(e: WorkflowError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


def _proposal_uuid(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise HTTPException(
            status_code=404,
            detail={"kind": "not_found", "message": f"Work proposal {raw} not found."},
        )


def _too_large(field: str, max_bytes: int) -> HTTPException:
    return _http(ValidationError(f"Uploaded files must not exceed {max_bytes} bytes.", fields=[field]))


def _read(f: UploadFile, field: str, max_bytes: int) -> UploadedFile:
    """Reads at most max_bytes + 1 bytes; anything longer is rejected unread."""
    if f.size is not None and f.size > max_bytes:
        raise _too_large(field, max_bytes)
    data = f.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise _too_large(field, max_bytes)
    return UploadedFile(
        filename=f.filename or "upload",
        content_type=f.content_type or "application/octet-stream",
        data=data,
    )


def _uploads(document: Optional[UploadFile], images: Optional[List[UploadFile]]) -> PendingUploads:
    settings = get_settings()
    # browsers send an empty part for an untouched file input
    image_parts = [img for img in (images or []) if img.filename]
    if len(image_parts) > settings.max_images_per_upload:
        raise _http(ValidationError(
            f"At most {settings.max_images_per_upload} images may be uploaded at once.", fields=["images"]
        ))
    return PendingUploads(
        document=(
            _read(document, "document", settings.max_upload_bytes)
            if document is not None and document.filename
            else None
        ),
        images=[_read(img, "images", settings.max_upload_bytes) for img in image_parts],
    )


def _form_fields(**values: Optional[str]) -> Dict[str, Any]:
    """camelCase form fields minus the blanks."""
    return {k: v for k, v in values.items() if v is not None and v != ""}


def _parse_installments(raw: Optional[str]) -> List[Any]:
    if raw is None or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("installments must be a JSON array.", fields=["installments"])
    if not isinstance(value, list):
        raise ValidationError("installments must be a JSON array.", fields=["installments"])
    return value


def _summary(data: Dict[str, Any], uploads: Optional[PendingUploads] = None) -> Dict[str, Any]:
    out = dict(data)
    if uploads is not None:
        out["documentCount"] = 1 if uploads.document else 0
        out["imageCount"] = len(uploads.images)
    return out


# ─────────────────────────────────────────────────────────────
# REGISTRATION / READS
# ─────────────────────────────────────────────────────────────

@router.post("", response_model=WorkProposal, status_code=201)
def create_proposal(
    req: ProposalCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*PROPOSAL_SUBMITTERS)),
    svc: ProposalsService = Depends(get_proposals_service),
):
    try:
        proposal = svc.create(db, payload=req, submitted_by=user.id)
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=proposal.id,
        action=AuditAction.PROPOSAL_CREATED,
        payload_summary={"serialNumber": proposal.serial_number, "nameOfWork": proposal.name_of_work},
        ref_id=proposal.serial_number,
    )
    return proposal


@router.get("/{proposal_id}", response_model=ProposalDetailResponse)
def get_proposal(
    proposal_id: str,
    entry: Optional[str] = Query(None, description="'all' or a 1-based progress entry index"),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    svc: ProposalsService = Depends(get_proposals_service),
):
    try:
        proposal = svc.get(db, _proposal_uuid(proposal_id))
        selector = parse_selector(entry)
        try:
            view = select_view(proposal, selector)
        except ValidationError:
            # out-of-range selections fall back to the full view
            selector = "all"
            view = select_view(proposal, selector)
    except WorkflowError as e:
        raise _http(e)

    return ProposalDetailResponse(
        selected_entry=str(selector),
        total_entries=max(len(proposal.work_progress) - 1, 0),
        proposal=view,
        images=collect_images(proposal),
    )


@router.get("/{proposal_id}/images", response_model=List[ImageRef])
def get_proposal_images(
    proposal_id: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    svc: ProposalsService = Depends(get_proposals_service),
):
    try:
        proposal = svc.get(db, _proposal_uuid(proposal_id))
    except WorkflowError as e:
        raise _http(e)
    return collect_images(proposal)


@router.get("/{proposal_id}/progress", response_model=ProgressListResponse)
def list_progress(
    proposal_id: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    svc: ProgressLedgerService = Depends(get_ledger_service),
):
    pid = _proposal_uuid(proposal_id)
    try:
        entries = svc.list_progress(db, pid)
    except WorkflowError as e:
        raise _http(e)
    return ProgressListResponse(proposal_id=pid, entries=entries)


# ─────────────────────────────────────────────────────────────
# PROGRESS LEDGER
# ─────────────────────────────────────────────────────────────

@router.post("/{proposal_id}/progress", response_model=ProgressEntry, status_code=201)
def append_progress(
    proposal_id: str,
    request: Request,
    desc: Optional[str] = Form(None),
    sanctionedAmount: Optional[str] = Form(None),
    totalAmountReleasedSoFar: Optional[str] = Form(None),
    remainingBalance: Optional[str] = Form(None),
    expenditureAmount: Optional[str] = Form(None),
    mbStageMeasurementBookStag: Optional[str] = Form(None),
    installments: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*PROGRESS_WRITERS)),
    svc: ProgressLedgerService = Depends(get_ledger_service),
):
    pid = _proposal_uuid(proposal_id)
    uploads = _uploads(document, images)
    try:
        payload = _form_fields(
            desc=desc,
            sanctionedAmount=sanctionedAmount,
            totalAmountReleasedSoFar=totalAmountReleasedSoFar,
            remainingBalance=remainingBalance,
            expenditureAmount=expenditureAmount,
            mbStageMeasurementBookStag=mbStageMeasurementBookStag,
        )
        payload["installments"] = _parse_installments(installments)
        entry = svc.append_progress(
            db,
            proposal_id=pid,
            requester_id=user.id,
            payload=payload,
            uploads=uploads,
        )
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.PROGRESS_APPENDED,
        payload_summary=_summary({"entryId": str(entry.id), "installments": len(entry.installments)}, uploads),
        ref_id=str(entry.id),
    )
    return entry


@router.delete("/{proposal_id}/progress/{entry_id}", status_code=204)
def remove_progress(
    proposal_id: str,
    entry_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*PROGRESS_WRITERS)),
    svc: ProgressLedgerService = Depends(get_ledger_service),
):
    pid = _proposal_uuid(proposal_id)
    try:
        svc.remove_progress(db, proposal_id=pid, progress_entry_id=entry_id, requester_id=user.id)
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.PROGRESS_REMOVED,
        payload_summary={"entryId": entry_id},
        ref_id=entry_id,
    )
    return None


@router.patch("/{proposal_id}/status", response_model=WorkProposal)
def set_status(
    proposal_id: str,
    req: StatusUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*PROGRESS_WRITERS)),
    svc: ProgressLedgerService = Depends(get_ledger_service),
    proposals: ProposalsService = Depends(get_proposals_service),
):
    pid = _proposal_uuid(proposal_id)
    try:
        before = proposals.get(db, pid).version
        proposal = svc.set_status(db, proposal_id=pid, requester_id=user.id, new_status=req.current_status)
    except WorkflowError as e:
        raise _http(e)

    if proposal.version == before:
        # same status again: nothing written, nothing to audit
        return proposal

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.STATUS_SET,
        payload_summary={"currentStatus": proposal.current_status.value},
    )
    return proposal


# ─────────────────────────────────────────────────────────────
# APPROVALS
# ─────────────────────────────────────────────────────────────

def _decide(
    *,
    stage: ApprovalStage,
    proposal_id: str,
    request: Request,
    action: str,
    fields: Dict[str, Any],
    uploads: PendingUploads,
    db: Session,
    user: CurrentUser,
    svc: ApprovalStageService,
) -> ApprovalRecord:
    pid = _proposal_uuid(proposal_id)
    try:
        record = svc.decide(
            db,
            proposal_id=pid,
            stage=stage,
            action=action,
            fields=fields,
            requester_id=user.id,
            uploads=uploads,
        )
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=(
            AuditAction.TECHNICAL_DECIDED
            if stage == ApprovalStage.TECHNICAL
            else AuditAction.ADMINISTRATIVE_DECIDED
        ),
        payload_summary=_summary({"action": action, **fields}, uploads),
        ref_id=record.approval_number,
    )
    return record


@router.post("/{proposal_id}/technical-approval", response_model=ApprovalRecord)
def decide_technical(
    proposal_id: str,
    request: Request,
    action: str = Form(...),
    approvalNumber: Optional[str] = Form(None),
    remarks: Optional[str] = Form(None),
    rejectionReason: Optional[str] = Form(None),
    amountOfTechnicalSanction: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*TECHNICAL_APPROVERS)),
    svc: ApprovalStageService = Depends(get_approval_service),
):
    return _decide(
        stage=ApprovalStage.TECHNICAL,
        proposal_id=proposal_id,
        request=request,
        action=action,
        fields=_form_fields(
            approvalNumber=approvalNumber,
            remarks=remarks,
            rejectionReason=rejectionReason,
            amountOfTechnicalSanction=amountOfTechnicalSanction,
        ),
        uploads=_uploads(document, images),
        db=db,
        user=user,
        svc=svc,
    )


@router.post("/{proposal_id}/administrative-approval", response_model=ApprovalRecord)
def decide_administrative(
    proposal_id: str,
    request: Request,
    action: str = Form(...),
    approvalNumber: Optional[str] = Form(None),
    remarks: Optional[str] = Form(None),
    rejectionReason: Optional[str] = Form(None),
    approvedAmount: Optional[str] = Form(None),
    govtDistrictAS: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*ADMINISTRATIVE_APPROVERS)),
    svc: ApprovalStageService = Depends(get_approval_service),
):
    return _decide(
        stage=ApprovalStage.ADMINISTRATIVE,
        proposal_id=proposal_id,
        request=request,
        action=action,
        fields=_form_fields(
            approvalNumber=approvalNumber,
            remarks=remarks,
            rejectionReason=rejectionReason,
            approvedAmount=approvedAmount,
            govtDistrictAS=govtDistrictAS,
        ),
        uploads=_uploads(document, images),
        db=db,
        user=user,
        svc=svc,
    )


# ─────────────────────────────────────────────────────────────
# TENDER
# ─────────────────────────────────────────────────────────────

@router.post("/{proposal_id}/tender", response_model=TenderRecord, status_code=201)
def start_tender(
    proposal_id: str,
    request: Request,
    tenderTitle: Optional[str] = Form(None),
    tenderId: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    issuedDate: Optional[str] = Form(None),
    remark: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*TENDER_MANAGERS)),
    svc: TenderService = Depends(get_tender_service),
):
    pid = _proposal_uuid(proposal_id)
    fields = _form_fields(
        tenderTitle=tenderTitle, tenderId=tenderId, department=department, issuedDate=issuedDate, remark=remark
    )
    uploads = _uploads(document, images)
    try:
        record = svc.start_tender(db, proposal_id=pid, requester_id=user.id, fields=fields, uploads=uploads)
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.TENDER_STARTED,
        payload_summary=_summary(fields, uploads),
        ref_id=record.tender_id,
    )
    return record


@router.put("/{proposal_id}/tender", response_model=TenderRecord)
def update_tender(
    proposal_id: str,
    request: Request,
    tenderTitle: Optional[str] = Form(None),
    tenderId: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    issuedDate: Optional[str] = Form(None),
    remark: Optional[str] = Form(None),
    tenderStatus: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*TENDER_MANAGERS)),
    svc: TenderService = Depends(get_tender_service),
):
    pid = _proposal_uuid(proposal_id)
    fields = _form_fields(
        tenderTitle=tenderTitle,
        tenderId=tenderId,
        department=department,
        issuedDate=issuedDate,
        remark=remark,
        tenderStatus=tenderStatus,
    )
    uploads = _uploads(document, images)
    try:
        record = svc.update_tender(db, proposal_id=pid, requester_id=user.id, fields=fields, uploads=uploads)
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.TENDER_UPDATED,
        payload_summary=_summary(fields, uploads),
        ref_id=record.tender_id,
    )
    return record


@router.post("/{proposal_id}/tender/award", response_model=TenderRecord)
def award_tender(
    proposal_id: str,
    req: TenderAwardRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*TENDER_MANAGERS)),
    svc: TenderService = Depends(get_tender_service),
):
    pid = _proposal_uuid(proposal_id)
    try:
        record = svc.award_tender(db, proposal_id=pid, requester_id=user.id, award=req)
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.TENDER_AWARDED,
        payload_summary={"contractorName": req.contractor_name, "awardedAmount": str(req.awarded_amount)},
        ref_id=record.tender_id,
    )
    return record


# ─────────────────────────────────────────────────────────────
# WORK ORDER
# ─────────────────────────────────────────────────────────────

@router.post("/{proposal_id}/work-order", response_model=WorkOrderRecord, status_code=201)
def create_work_order(
    proposal_id: str,
    request: Request,
    workOrderNumber: Optional[str] = Form(None),
    dateOfWorkOrder: Optional[str] = Form(None),
    contractorOrGramPanchayat: Optional[str] = Form(None),
    remark: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*WORK_ORDER_MANAGERS)),
    svc: WorkOrderService = Depends(get_work_order_service),
):
    pid = _proposal_uuid(proposal_id)
    fields = _form_fields(
        workOrderNumber=workOrderNumber,
        dateOfWorkOrder=dateOfWorkOrder,
        contractorOrGramPanchayat=contractorOrGramPanchayat,
        remark=remark,
    )
    uploads = _uploads(document, images)
    try:
        record = svc.create_work_order(db, proposal_id=pid, requester_id=user.id, fields=fields, uploads=uploads)
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.WORK_ORDER_CREATED,
        payload_summary=_summary(fields, uploads),
        ref_id=record.work_order_number,
    )
    return record


@router.put("/{proposal_id}/work-order", response_model=WorkOrderRecord)
def update_work_order(
    proposal_id: str,
    request: Request,
    workOrderNumber: Optional[str] = Form(None),
    dateOfWorkOrder: Optional[str] = Form(None),
    contractorOrGramPanchayat: Optional[str] = Form(None),
    remark: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_role(*WORK_ORDER_MANAGERS)),
    svc: WorkOrderService = Depends(get_work_order_service),
):
    pid = _proposal_uuid(proposal_id)
    fields = _form_fields(
        workOrderNumber=workOrderNumber,
        dateOfWorkOrder=dateOfWorkOrder,
        contractorOrGramPanchayat=contractorOrGramPanchayat,
        remark=remark,
    )
    uploads = _uploads(document, images)
    try:
        record = svc.update_work_order(db, proposal_id=pid, requester_id=user.id, fields=fields, uploads=uploads)
    except WorkflowError as e:
        raise _http(e)

    audit_event(
        db,
        request=request,
        actor=user,
        proposal_id=pid,
        action=AuditAction.WORK_ORDER_UPDATED,
        payload_summary=_summary(fields, uploads),
        ref_id=record.work_order_number,
    )
    return record
