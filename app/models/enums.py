#app/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    DEPARTMENT_USER = "DEPARTMENT_USER"
    ENGINEER = "ENGINEER"
    TECHNICAL_APPROVER = "TECHNICAL_APPROVER"
    ADMINISTRATIVE_APPROVER = "ADMINISTRATIVE_APPROVER"
    TENDER_MANAGER = "TENDER_MANAGER"
    WORK_ORDER_MANAGER = "WORK_ORDER_MANAGER"
    VIEWER = "VIEWER"


class WorkStatus(str, Enum):
    # approval / tender / work-order stage states
    PENDING_TECHNICAL_APPROVAL = "Pending Technical Approval"
    REJECTED_TECHNICAL_APPROVAL = "Rejected Technical Approval"
    PENDING_ADMINISTRATIVE_APPROVAL = "Pending Administrative Approval"
    REJECTED_ADMINISTRATIVE_APPROVAL = "Rejected Administrative Approval"
    PENDING_TENDER = "Pending Tender"
    TENDER_IN_PROGRESS = "Tender In Progress"
    PENDING_WORK_ORDER = "Pending Work Order"
    WORK_ORDER_CREATED = "Work Order Created"

    # execution states (manually set)
    WORK_NOT_STARTED = "Work Not Started"
    WORK_IN_PROGRESS = "Work In Progress"
    WORK_COMPLETED = "Work Completed"
    WORK_CANCELLED = "Work Cancelled"
    WORK_STOPPED = "Work Stopped"


class ApprovalStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ApprovalStage(str, Enum):
    TECHNICAL = "technical"
    ADMINISTRATIVE = "administrative"


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class TenderStatus(str, Enum):
    NOT_STARTED = "Not Started"
    NOTICE_PUBLISHED = "Notice Published"
    BID_SUBMISSION = "Bid Submission"
    UNDER_EVALUATION = "Under Evaluation"
    AWARDED = "Awarded"
    CANCELLED = "Cancelled"


class ProgressEntryRole(str, Enum):
    # seeded by work-order creation, hidden from entry selection
    ANCHOR = "anchor"
    UPDATE = "update"
