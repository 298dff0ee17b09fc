# /app/models/work_proposal.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONDocument
from app.models.enums import WorkStatus


class WorkProposalRecord(Base):
    """
    One row per proposal. Stage records and the progress ledger are embedded
    JSON documents; the row is always written as a whole, guarded by `version`.
    """

    __tablename__ = "work_proposals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    serial_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    # Classification (reference data lives elsewhere; ids kept as strings)
    name_of_work: Mapped[str] = mapped_column(String(500), nullable=False)
    work_description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    type_of_work: Mapped[str] = mapped_column(String(128), nullable=False)
    work_agency: Mapped[str] = mapped_column(String(128), nullable=False)
    scheme: Mapped[str] = mapped_column(String(128), nullable=False)
    work_department: Mapped[str] = mapped_column(String(128), nullable=False)
    approving_department: Mapped[str] = mapped_column(String(128), nullable=False)
    financial_year: Mapped[str] = mapped_column(String(16), nullable=False)
    sanction_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    # Location
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    ward: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    type_of_location: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    assembly: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Assignment
    appointed_engineer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    appointed_sdo: Mapped[str] = mapped_column(String(128), nullable=False)
    is_tender_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    submitted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    submission_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    estimated_completion_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    current_status: Mapped[str] = mapped_column(
        String(64), nullable=False, default=WorkStatus.PENDING_TECHNICAL_APPROVAL.value
    )
    last_status_update: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Embedded stage documents
    technical_approval_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    administrative_approval_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    tender_process_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    work_order_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    work_progress_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=False, default=list)

    # Denormalised for the cross-proposal uniqueness rule
    work_order_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)

    # Optimistic concurrency stamp (bumped on every save)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_work_proposals_status", "current_status"),
        Index("ix_work_proposals_financial_year", "financial_year"),
    )
