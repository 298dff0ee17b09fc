# app/core/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class WorkflowError(Exception):
    """
    Base class for every failure the proposal lifecycle reports.

    `kind` is a stable machine-readable tag so the UI can render a specific
    message; `status_code` is the HTTP mapping used by the API layer.
    """

    kind = "workflow_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class NotFound(WorkflowError):
    kind = "not_found"
    status_code = 404


class Forbidden(WorkflowError):
    kind = "forbidden"
    status_code = 403


class ValidationError(WorkflowError):
    """Missing/invalid input for the requested action. `fields` names the culprits."""

    kind = "validation_error"
    status_code = 422

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        if self.fields:
            detail["fields"] = self.fields
        return detail


class InvalidArgument(ValidationError):
    kind = "invalid_argument"


class InvalidTransition(ValidationError):
    kind = "invalid_transition"


class Conflict(WorkflowError):
    """Lost a version race; re-reading and re-applying the change may succeed."""

    kind = "conflict"
    status_code = 409
    retryable = True


class DuplicateValue(Conflict):
    """A unique value (the work order number) is held by another proposal."""

    kind = "duplicate_value"
    retryable = False


class UpstreamStorageError(WorkflowError):
    kind = "upstream_storage_error"
    status_code = 502
