# Importing the package registers every table on Base.metadata.
from app.models.audit_log import AuditLogRecord  # noqa: F401
from app.models.work_proposal import WorkProposalRecord  # noqa: F401
