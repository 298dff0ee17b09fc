# app/services/progress_ledger_service.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument, InvalidTransition, NotFound
from app.core.status_graph import MANUAL_STATUSES, allowed_next_states
from app.models.enums import WorkStatus
from app.schemas.primitives import parse_payload
from app.schemas.progress import ProgressEntry, ProgressPayload
from app.schemas.work_proposals import WorkProposal
from app.services.attachment_service import PendingUploads, StoredUploads
from app.services.proposal_mutation import ProposalMutationService, Unchanged, assert_appointed_engineer, utcnow

logger = logging.getLogger(__name__)


def parse_work_status(raw: Union[str, WorkStatus]) -> WorkStatus:
    try:
        status = WorkStatus(raw)
    except ValueError:
        raise InvalidArgument(f"Unknown status '{raw}'.", fields=["currentStatus"])
    if status not in MANUAL_STATUSES:
        raise InvalidArgument(
            f"Status '{status.value}' is set by the approval workflow and cannot be chosen manually.",
            fields=["currentStatus"],
        )
    return status


class ProgressLedgerService(ProposalMutationService):
    """
    Append-only progress history of a proposal plus its manual status.

    Entries are never edited; a correction is a new entry (or a delete of
    the wrong one followed by a new one).
    """

    # ---------------------------
    # READS
    # ---------------------------

    def list_progress(self, db: Session, proposal_id: Union[str, uuid.UUID]) -> List[ProgressEntry]:
        return list(self.store.load(db, proposal_id).work_progress)

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def append_progress(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        requester_id: str,
        payload: Union[ProgressPayload, Dict[str, Any]],
        uploads: Optional[PendingUploads] = None,
    ) -> ProgressEntry:
        if not isinstance(payload, ProgressPayload):
            payload = parse_payload(ProgressPayload, payload)

        # authorize before anything reaches the object store
        assert_appointed_engineer(self.store.load(db, proposal_id), requester_id)
        self.attachments.validate(uploads)

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> ProgressEntry:
            assert_appointed_engineer(proposal, requester_id)
            entry = ProgressEntry(
                **payload.model_dump(),
                progress_documents=stored.document,
                progress_images=stored.images,
                last_updated_by=requester_id,
                created_at=utcnow(),
            )
            proposal.work_progress.append(entry)
            return entry

        entry = self._mutate(
            db,
            proposal_id=proposal_id,
            mutate=mutate,
            uploads=uploads,
            folder=f"work-proposals/{proposal_id}/progress",
        )
        logger.info(
            "Progress entry appended",
            extra={"proposalId": str(proposal_id), "entryId": str(entry.id), "actor": requester_id},
        )
        return entry

    def remove_progress(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        progress_entry_id: Union[str, uuid.UUID],
        requester_id: Optional[str] = None,
    ) -> None:
        try:
            entry_id = uuid.UUID(str(progress_entry_id))
        except ValueError:
            raise NotFound(f"Progress entry {progress_entry_id} not found.")

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> ProgressEntry:
            for idx, entry in enumerate(proposal.work_progress):
                if entry.id == entry_id:
                    return proposal.work_progress.pop(idx)
            raise NotFound(f"Progress entry {progress_entry_id} not found.")

        removed = self._mutate(
            db,
            proposal_id=proposal_id,
            mutate=mutate,
            folder=f"work-proposals/{proposal_id}/progress",
        )

        # the entry owned its files exclusively
        owned = ([removed.progress_documents] if removed.progress_documents else []) + removed.progress_images
        self.attachments.discard(owned)

        logger.info(
            "Progress entry removed",
            extra={"proposalId": str(proposal_id), "entryId": str(entry_id), "actor": requester_id},
        )

    def set_status(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        requester_id: str,
        new_status: Union[str, WorkStatus],
    ) -> WorkProposal:
        target = parse_work_status(new_status)
        enforced = self.settings.status_transitions_enforced

        def mutate(proposal: WorkProposal, stored: StoredUploads) -> WorkProposal:
            current = proposal.current_status
            if current == target:
                raise Unchanged(proposal)
            if enforced and target not in allowed_next_states(current):
                raise InvalidTransition(
                    f"Cannot move from '{current.value}' to '{target.value}'.",
                    fields=["currentStatus"],
                )
            proposal.current_status = target
            proposal.last_status_update = utcnow()
            return proposal

        proposal = self._mutate(
            db,
            proposal_id=proposal_id,
            mutate=mutate,
            folder=f"work-proposals/{proposal_id}",
        )
        logger.info(
            "Work status set",
            extra={"proposalId": str(proposal_id), "status": target.value, "actor": requester_id},
        )
        return proposal
