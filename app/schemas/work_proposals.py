#app/schemas/work_proposals.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import WorkStatus
from app.schemas.primitives import CamelModel, NonNegMoney
from app.schemas.progress import ProgressEntry
from app.schemas.stages import ApprovalRecord, TenderRecord, WorkOrderRecord


class ProposalClassification(CamelModel):
    name_of_work: str = Field(..., min_length=1, max_length=500)
    work_description: str = Field(default="", max_length=2000)
    type_of_work: str = Field(..., min_length=1)
    work_agency: str = Field(..., min_length=1)
    scheme: str = Field(..., min_length=1)
    work_department: str = Field(..., min_length=1)
    approving_department: str = Field(..., min_length=1)
    financial_year: str = Field(..., min_length=4, max_length=16)
    sanction_amount: NonNegMoney

    city: Optional[str] = None
    ward: Optional[str] = None
    type_of_location: Optional[str] = None
    assembly: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    appointed_engineer: str = Field(..., min_length=1)
    appointed_sdo: str = Field(..., min_length=1)
    is_tender_required: bool = False
    estimated_completion_date: Optional[datetime] = None


class ProposalCreateRequest(ProposalClassification):
    pass


class WorkProposal(ProposalClassification):
    """
    Aggregate root: identity + classification + every stage record + the
    ordered progress ledger. Loaded and saved as one unit.
    """
    id: uuid.UUID
    serial_number: str
    submitted_by: str
    submission_date: datetime

    current_status: WorkStatus = WorkStatus.PENDING_TECHNICAL_APPROVAL
    last_status_update: datetime

    technical_approval: Optional[ApprovalRecord] = None
    administrative_approval: Optional[ApprovalRecord] = None
    tender_process: Optional[TenderRecord] = None
    work_order: Optional[WorkOrderRecord] = None

    # storage order == append order
    work_progress: List[ProgressEntry] = Field(default_factory=list)

    version: int = 1


class StatusUpdateRequest(CamelModel):
    # validated against the vocabulary by the ledger service
    current_status: str = Field(..., min_length=1)


class ImageRef(BaseModel):
    url: str
    section: str
    caption: str


class ProposalDetailResponse(CamelModel):
    selected_entry: str
    total_entries: int
    proposal: WorkProposal
    images: List[ImageRef]


class ProgressListResponse(CamelModel):
    proposal_id: uuid.UUID
    entries: List[ProgressEntry]
