from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar, Union

from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import Forbidden
from app.schemas.work_proposals import WorkProposal
from app.services.attachment_service import AttachmentService, PendingUploads, StoredUploads
from app.services.object_store import get_object_store
from app.services.proposal_store import ProposalStore, run_with_retry

T = TypeVar("T")


class Unchanged(Exception):
    """Raised by a mutate callback when the aggregate already holds the requested state."""

    def __init__(self, result):
        super().__init__("no change")
        self.result = result


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def assert_appointed_engineer(proposal: WorkProposal, requester_id: str) -> None:
    if proposal.appointed_engineer != requester_id:
        raise Forbidden("Only the appointed engineer may record progress on this proposal.")


class ProposalMutationService:
    """
    Shared write path for every operation that changes a proposal:

        upload files -> (load -> mutate -> save) with retry -> commit

    If anything after the upload fails, the uploaded objects are removed
    so no orphaned file outlives a rejected write.
    """

    def __init__(
        self,
        store: Optional[ProposalStore] = None,
        attachments: Optional[AttachmentService] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or ProposalStore()
        self.attachments = attachments or AttachmentService.from_settings(
            self.settings, store=get_object_store()
        )

    def _mutate(
        self,
        db: Session,
        *,
        proposal_id: Union[str, uuid.UUID],
        mutate: Callable[[WorkProposal, StoredUploads], T],
        uploads: Optional[PendingUploads] = None,
        folder: str,
    ) -> T:
        stored = self.attachments.store_all(uploads, folder=folder)

        def attempt() -> T:
            proposal = self.store.load(db, proposal_id)
            try:
                result = mutate(proposal, stored)
            except Unchanged as skip:
                return skip.result
            self.store.save(db, proposal)
            return result

        try:
            return run_with_retry(attempt, attempts=self.settings.progress_write_max_retries)
        except Exception:
            self.attachments.discard(stored.all())
            raise
