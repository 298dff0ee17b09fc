from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator

from app.models.enums import ApprovalStatus, TenderStatus
from app.schemas.primitives import (
    Attachment,
    CamelModel,
    NonNegMoney,
    coerce_attachment_list,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _StageRecord(CamelModel):
    """Shared attachment handling for every single-instance stage record."""

    attached_file: Optional[Attachment] = None
    attached_images: List[Attachment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("attached_images", mode="before")
    @classmethod
    def _normalise_images(cls, value):
        return coerce_attachment_list(value)


# -----------------------
# Approvals (technical / administrative)
# -----------------------


class ApprovalRecord(_StageRecord):
    status: ApprovalStatus = ApprovalStatus.PENDING
    approval_number: Optional[str] = None
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None
    remarks: Optional[str] = None
    rejection_reason: Optional[str] = None

    # technical stage
    amount_of_technical_sanction: Optional[NonNegMoney] = None

    # administrative stage
    approved_amount: Optional[NonNegMoney] = None
    govt_district_as: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("govtDistrictAS", "byGovtDistrictAS", "govt_district_as"),
        serialization_alias="govtDistrictAS",
    )


class ApprovalDecisionFields(CamelModel):
    """
    Free-form decision input; which of these are mandatory depends on
    (stage, action) and is enforced by ApprovalStageService.
    """
    approval_number: Optional[str] = None
    remarks: Optional[str] = None
    rejection_reason: Optional[str] = None
    amount_of_technical_sanction: Optional[NonNegMoney] = None
    approved_amount: Optional[NonNegMoney] = None
    govt_district_as: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("govtDistrictAS", "byGovtDistrictAS", "govt_district_as"),
    )


# -----------------------
# Tender
# -----------------------


class SelectedContractor(CamelModel):
    name: str = Field(..., min_length=1)
    contact_info: Optional[str] = None
    awarded_amount: NonNegMoney


class TenderRecord(_StageRecord):
    tender_title: Optional[str] = None
    tender_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("tenderId", "tenderID", "tender_id"),
        serialization_alias="tenderId",
    )
    department: Optional[str] = None
    issued_date: Optional[datetime] = None
    remark: Optional[str] = None
    tender_status: TenderStatus = TenderStatus.NOT_STARTED
    selected_contractor: Optional[SelectedContractor] = None
    last_modified_by: Optional[str] = None


class TenderFields(CamelModel):
    tender_title: Optional[str] = None
    tender_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("tenderId", "tenderID", "tender_id"),
    )
    department: Optional[str] = None
    issued_date: Optional[datetime] = None
    remark: Optional[str] = None
    tender_status: Optional[str] = None


class TenderAwardRequest(CamelModel):
    contractor_name: str = Field(..., min_length=1)
    contact_info: Optional[str] = None
    awarded_amount: NonNegMoney


# -----------------------
# Work order
# -----------------------


class WorkOrderRecord(_StageRecord):
    work_order_number: Optional[str] = None
    date_of_work_order: Optional[datetime] = None
    contractor_or_gram_panchayat: Optional[str] = None
    remark: Optional[str] = None
    issued_by: Optional[str] = None
    last_modified_by: Optional[str] = None


class WorkOrderFields(CamelModel):
    work_order_number: Optional[str] = None
    date_of_work_order: Optional[datetime] = None
    contractor_or_gram_panchayat: Optional[str] = None
    remark: Optional[str] = None
