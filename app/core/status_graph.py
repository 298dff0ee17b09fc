# app/core/status_graph.py
from __future__ import annotations

from typing import FrozenSet, Set

from app.models.enums import WorkStatus

# Statuses an engineer/admin may pick by hand. Everything else is reached
# only through the stage operations.
MANUAL_STATUSES: FrozenSet[WorkStatus] = frozenset(
    {
        WorkStatus.WORK_NOT_STARTED,
        WorkStatus.WORK_IN_PROGRESS,
        WorkStatus.WORK_COMPLETED,
        WorkStatus.WORK_CANCELLED,
        WorkStatus.WORK_STOPPED,
    }
)

# While in one of these, an approval decision is allowed to move the status.
APPROVAL_PHASE_STATUSES: FrozenSet[WorkStatus] = frozenset(
    {
        WorkStatus.PENDING_TECHNICAL_APPROVAL,
        WorkStatus.REJECTED_TECHNICAL_APPROVAL,
        WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL,
        WorkStatus.REJECTED_ADMINISTRATIVE_APPROVAL,
    }
)

ALLOWED_STATUS_TRANSITIONS = {
    WorkStatus.PENDING_TECHNICAL_APPROVAL: {
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.REJECTED_TECHNICAL_APPROVAL: {
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL: {
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.REJECTED_ADMINISTRATIVE_APPROVAL: {
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.PENDING_TENDER: {
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.TENDER_IN_PROGRESS: {
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.PENDING_WORK_ORDER: {
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.WORK_ORDER_CREATED: {
        WorkStatus.WORK_NOT_STARTED,
        WorkStatus.WORK_IN_PROGRESS,
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.WORK_NOT_STARTED: {
        WorkStatus.WORK_IN_PROGRESS,
        WorkStatus.WORK_STOPPED,
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.WORK_IN_PROGRESS: {
        WorkStatus.WORK_STOPPED,
        WorkStatus.WORK_COMPLETED,
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.WORK_STOPPED: {
        WorkStatus.WORK_IN_PROGRESS,
        WorkStatus.WORK_CANCELLED,
    },
    WorkStatus.WORK_COMPLETED: set(),
    WorkStatus.WORK_CANCELLED: set(),
}


def allowed_next_states(current: WorkStatus) -> Set[WorkStatus]:
    """Manual targets reachable from `current` (a copy; callers may mutate it)."""
    return set(ALLOWED_STATUS_TRANSITIONS.get(current, set()))
