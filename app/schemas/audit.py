from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from app.schemas.primitives import CamelModel


class AuditLogRecordResponse(CamelModel):
    """One append-only audit row, read straight off the ORM object."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    request_id: str
    route: str
    method: str
    actor_user_id: str
    actor_role: str
    action: str
    status: str
    payload_hash: str
    payload_summary: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("payload_summary_json", "payloadSummary"),
        serialization_alias="payloadSummary",
    )
    ref_id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_text(cls, v: Any) -> str:
        return str(v) if isinstance(v, uuid.UUID) else v

    @field_validator("payload_summary", mode="before")
    @classmethod
    def _summary_or_empty(cls, v: Any) -> Any:
        return v or {}


class AuditLogListResponse(CamelModel):
    proposal_id: str
    records: List[AuditLogRecordResponse]
