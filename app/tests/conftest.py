import os

# Settings are read once (lru_cache); pin them before any app import.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["OBJECT_STORE_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"

from types import SimpleNamespace

import pytest
from sqlalchemy.pool import StaticPool

# FORCE model registration
import app.models  # noqa

from app.db.base import Base
from app.db.session import build_engine, build_session_factory
from app.core.config import get_settings
from app.services.approval_stage_service import ApprovalStageService
from app.services.attachment_service import AttachmentService
from app.services.object_store import InMemoryObjectStore
from app.services.progress_ledger_service import ProgressLedgerService
from app.services.proposals_service import ProposalsService
from app.services.tender_service import TenderService
from app.services.work_order_service import WorkOrderService
from app.tests.factories import APPROVER, proposal_payload


@pytest.fixture(scope="function")
def engine():
    eng = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def db(engine):
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def object_store():
    return InMemoryObjectStore()


@pytest.fixture
def attachments(object_store):
    return AttachmentService(object_store, max_bytes=1024, max_images=5)


@pytest.fixture
def services(attachments):
    settings = get_settings()
    return SimpleNamespace(
        proposals=ProposalsService(),
        ledger=ProgressLedgerService(attachments=attachments, settings=settings),
        approvals=ApprovalStageService(attachments=attachments, settings=settings),
        tender=TenderService(attachments=attachments, settings=settings),
        work_order=WorkOrderService(attachments=attachments, settings=settings),
    )


@pytest.fixture
def make_proposal(db, services):
    def _make(**overrides):
        return services.proposals.create(db, payload=proposal_payload(**overrides), submitted_by="dept-1")

    return _make


@pytest.fixture
def approved_proposal(db, services, make_proposal):
    """Technical + administrative approval done; waiting on tender or work order."""

    def _make(**overrides):
        p = make_proposal(**overrides)
        services.approvals.decide(
            db, proposal_id=p.id, stage="technical", action="approve",
            fields={"approvalNumber": "TA-1", "amountOfTechnicalSanction": "1500000"},
            requester_id=APPROVER,
        )
        services.approvals.decide(
            db, proposal_id=p.id, stage="administrative", action="approve",
            fields={"approvalNumber": "AA-1", "approvedAmount": "1450000", "govtDistrictAS": "District"},
            requester_id=APPROVER,
        )
        return services.proposals.get(db, p.id)

    return _make


@pytest.fixture
def working_proposal(db, services, approved_proposal):
    """Work order issued: workProgress holds exactly the anchor."""

    def _make(work_order_number=None, **overrides):
        p = approved_proposal(**overrides)
        services.work_order.create_work_order(
            db, proposal_id=p.id, requester_id="wo-manager",
            fields={
                "workOrderNumber": work_order_number or f"WO-{p.serial_number}",
                "dateOfWorkOrder": "2026-08-01T00:00:00Z",
                "contractorOrGramPanchayat": "Gram Panchayat Khairagarh",
            },
        )
        return services.proposals.get(db, p.id)

    return _make
