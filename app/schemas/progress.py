from __future__ import annotations

import uuid
import datetime as dt
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from app.models.enums import ProgressEntryRole
from app.schemas.primitives import (
    Attachment,
    CamelModel,
    Money,
    NonNegMoney,
    coerce_attachment_list,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Installment(CamelModel):
    installment_no: int = Field(..., ge=1)
    amount: NonNegMoney
    date: dt.date


class ProgressPayload(CamelModel):
    """
    Fields an engineer submits with a progress update. Files travel separately.
    """
    desc: Optional[str] = None
    sanctioned_amount: Optional[NonNegMoney] = None
    total_amount_released_so_far: Optional[NonNegMoney] = None
    remaining_balance: Optional[NonNegMoney] = None
    expenditure_amount: Optional[NonNegMoney] = None
    mb_stage_measurement_book_stag: Optional[str] = None
    installments: List[Installment] = Field(default_factory=list)

    @model_validator(mode="after")
    def _installment_numbers_unique(self) -> "ProgressPayload":
        seen = set()
        for inst in self.installments:
            if inst.installment_no in seen:
                raise ValueError(f"Duplicate installmentNo {inst.installment_no}.")
            seen.add(inst.installment_no)
        return self


class ProgressEntry(CamelModel):
    """One recorded progress snapshot. Immutable once appended."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    role: ProgressEntryRole = ProgressEntryRole.UPDATE

    desc: Optional[str] = None
    sanctioned_amount: Optional[NonNegMoney] = None
    total_amount_released_so_far: Optional[NonNegMoney] = None
    # may go negative on the anchor when the sanction is revised downwards
    remaining_balance: Optional[Money] = None
    expenditure_amount: Optional[NonNegMoney] = None
    mb_stage_measurement_book_stag: Optional[str] = None

    installments: List[Installment] = Field(default_factory=list)

    progress_documents: Optional[Attachment] = None
    progress_images: List[Attachment] = Field(default_factory=list)

    last_updated_by: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)

    @field_validator("progress_images", mode="before")
    @classmethod
    def _normalise_images(cls, value):
        return coerce_attachment_list(value)

    @field_validator("progress_documents", mode="before")
    @classmethod
    def _normalise_document(cls, value):
        # Legacy rows stored a list or an empty object here
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, dict) and not (value.get("url") or value.get("Location")):
            return None
        return value
