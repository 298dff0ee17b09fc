import pytest

from app.core.errors import InvalidArgument, NotFound, ValidationError
from app.models.enums import ApprovalStatus, WorkStatus
from app.tests.factories import APPROVER, document, image, money, uploads


def test_technical_approve_moves_to_administrative(db, services, make_proposal):
    p = make_proposal()

    rec = services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="approve",
        fields={"approvalNumber": "TA-77", "amountOfTechnicalSanction": "1490000"},
        requester_id=APPROVER,
    )

    assert rec.status == ApprovalStatus.APPROVED
    assert rec.approved_by == APPROVER
    assert rec.approval_date is not None
    assert rec.amount_of_technical_sanction == money(1490000)

    stored = services.proposals.get(db, p.id)
    assert stored.technical_approval.approval_number == "TA-77"
    assert stored.current_status == WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL


def test_approve_without_number_names_missing_field(db, services, make_proposal):
    p = make_proposal()

    with pytest.raises(ValidationError) as exc:
        services.approvals.decide(
            db, proposal_id=p.id, stage="technical", action="approve", fields={}, requester_id=APPROVER,
        )

    assert exc.value.fields == ["approvalNumber"]
    assert services.proposals.get(db, p.id).technical_approval is None


def test_administrative_approve_requires_amount_and_authority(db, services, make_proposal):
    p = make_proposal()
    services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="approve",
        fields={"approvalNumber": "TA-1"}, requester_id=APPROVER,
    )

    with pytest.raises(ValidationError) as exc:
        services.approvals.decide(
            db, proposal_id=p.id, stage="administrative", action="approve",
            fields={"approvalNumber": "AA-1"}, requester_id=APPROVER,
        )

    assert exc.value.fields == ["approvedAmount", "govtDistrictAS"]


def test_administrative_decision_needs_technical_approval(db, services, make_proposal):
    p = make_proposal()

    with pytest.raises(ValidationError) as exc:
        services.approvals.decide(
            db, proposal_id=p.id, stage="administrative", action="approve",
            fields={"approvalNumber": "AA-1", "approvedAmount": "10", "govtDistrictAS": "District"},
            requester_id=APPROVER,
        )

    assert exc.value.fields == ["technicalApproval"]


@pytest.mark.parametrize("tender_required,expected", [
    (True, WorkStatus.PENDING_TENDER),
    (False, WorkStatus.PENDING_WORK_ORDER),
])
def test_administrative_approve_routes_on_tender_flag(db, approved_proposal, tender_required, expected):
    p = approved_proposal(isTenderRequired=tender_required)

    assert p.current_status == expected
    assert p.administrative_approval.govt_district_as == "District"


def test_reject_requires_reason(db, services, make_proposal):
    p = make_proposal()

    with pytest.raises(ValidationError) as exc:
        services.approvals.decide(
            db, proposal_id=p.id, stage="technical", action="reject", fields={"remarks": "no"},
            requester_id=APPROVER,
        )
    assert exc.value.fields == ["rejectionReason"]

    rec = services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="reject",
        fields={"rejectionReason": "Estimate incomplete"}, requester_id=APPROVER,
    )
    assert rec.status == ApprovalStatus.REJECTED
    assert rec.approval_number is None
    assert services.proposals.get(db, p.id).current_status == WorkStatus.REJECTED_TECHNICAL_APPROVAL


def test_redecision_overwrites_and_merges_attachments(db, services, make_proposal, object_store):
    p = make_proposal()
    first = services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="reject",
        fields={"rejectionReason": "Missing drawings"}, requester_id=APPROVER,
        uploads=uploads(doc=document("v1.pdf"), images=[image("1.jpg")]),
    )

    second = services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="approve",
        fields={"approvalNumber": "TA-2"}, requester_id="approver-2",
        uploads=uploads(doc=document("v2.pdf"), images=[image("2.jpg")]),
    )

    assert second.status == ApprovalStatus.APPROVED
    assert second.rejection_reason is None
    assert second.approved_by == "approver-2"
    assert second.attached_file.storage_id != first.attached_file.storage_id
    assert len(second.attached_images) == 2
    # replaced document removed from the store
    assert first.attached_file.storage_id not in object_store.objects
    assert services.proposals.get(db, p.id).current_status == WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL


def test_redecision_after_approval_phase_keeps_status(db, services, approved_proposal):
    p = approved_proposal()

    services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="approve",
        fields={"approvalNumber": "TA-1b"}, requester_id=APPROVER,
    )

    assert services.proposals.get(db, p.id).current_status == WorkStatus.PENDING_WORK_ORDER


@pytest.mark.parametrize("stage,action", [("financial", "approve"), ("technical", "defer")])
def test_unknown_stage_or_action(db, services, make_proposal, stage, action):
    p = make_proposal()

    with pytest.raises(InvalidArgument):
        services.approvals.decide(
            db, proposal_id=p.id, stage=stage, action=action,
            fields={"approvalNumber": "X"}, requester_id=APPROVER,
        )


def test_decide_unknown_proposal(db, services):
    with pytest.raises(NotFound):
        services.approvals.decide(
            db, proposal_id="00000000-0000-0000-0000-000000000000", stage="technical",
            action="approve", fields={"approvalNumber": "X"}, requester_id=APPROVER,
        )
