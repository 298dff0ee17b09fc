from app.schemas.primitives import Attachment, CamelModel, coerce_attachment_list, parse_payload
from app.schemas.progress import Installment, ProgressEntry, ProgressPayload
from app.schemas.stages import (
    ApprovalDecisionFields,
    ApprovalRecord,
    SelectedContractor,
    TenderAwardRequest,
    TenderFields,
    TenderRecord,
    WorkOrderFields,
    WorkOrderRecord,
)
from app.schemas.work_proposals import (
    ImageRef,
    ProposalCreateRequest,
    ProposalDetailResponse,
    StatusUpdateRequest,
    WorkProposal,
)
