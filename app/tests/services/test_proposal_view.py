import pytest

from app.core.errors import InvalidArgument
from app.schemas.work_proposals import WorkProposal
from app.services.proposal_view_service import ALL, collect_images, parse_selector, select_view
from app.tests.factories import ENGINEER, image, progress_payload, uploads


@pytest.fixture
def ledger_of_four(db, services, working_proposal):
    """anchor + 3 updates"""
    p = working_proposal()
    for desc in ("one", "two", "three"):
        services.ledger.append_progress(
            db, proposal_id=p.id, requester_id=ENGINEER, payload=progress_payload(desc),
        )
    return services.proposals.get(db, p.id)


def test_all_hides_anchor(ledger_of_four):
    view = select_view(ledger_of_four, ALL)

    assert [e.desc for e in view.work_progress] == ["one", "two", "three"]


@pytest.mark.parametrize("k,desc", [(1, "one"), (2, "two"), (3, "three")])
def test_single_entry(ledger_of_four, k, desc):
    view = select_view(ledger_of_four, k)

    assert [e.desc for e in view.work_progress] == [desc]


@pytest.mark.parametrize("k", [0, 4, -1, 1.5, "2", True])
def test_invalid_selector(ledger_of_four, k):
    with pytest.raises(InvalidArgument):
        select_view(ledger_of_four, k)


def test_select_view_leaves_aggregate_untouched(ledger_of_four):
    before = ledger_of_four.model_dump()

    select_view(ledger_of_four, 2)
    select_view(ledger_of_four, ALL)

    assert ledger_of_four.model_dump() == before
    assert len(ledger_of_four.work_progress) == 4


def test_anchor_only_proposal_shows_nothing(db, working_proposal):
    p = working_proposal()

    assert select_view(p, ALL).work_progress == []
    with pytest.raises(InvalidArgument):
        select_view(p, 1)


@pytest.mark.parametrize("raw,expected", [
    (None, ALL), ("", ALL), ("  ", ALL), ("all", ALL), ("ALL", ALL),
    ("3", 3), (2, 2), ("abc", ALL), (True, ALL),
])
def test_parse_selector_defaults_to_all(raw, expected):
    assert parse_selector(raw) == expected


def test_collect_images_order_and_captions(db, services, approved_proposal):
    p = approved_proposal()
    services.work_order.create_work_order(
        db, proposal_id=p.id, requester_id="wo-1",
        fields={
            "workOrderNumber": "WO-IMG",
            "dateOfWorkOrder": "2026-09-01T00:00:00Z",
            "contractorOrGramPanchayat": "Shree Infra",
        },
        uploads=uploads(images=[image("wo.jpg")]),
    )
    services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="approve",
        fields={"approvalNumber": "TA-9"}, requester_id="a-1",
        uploads=uploads(images=[image("ta1.jpg"), image("ta2.jpg")]),
    )
    services.ledger.append_progress(
        db, proposal_id=p.id, requester_id=ENGINEER, payload=progress_payload(),
        uploads=uploads(images=[image("p1.jpg")]),
    )

    refs = collect_images(services.proposals.get(db, p.id))

    assert [(r.section, r.caption) for r in refs] == [
        ("Technical Approval", "Technical Approval image 1"),
        ("Technical Approval", "Technical Approval image 2"),
        ("Work Order", "Work Order image 1"),
        ("Work Progress 2", "Work Progress image 2-1"),
    ]


def test_collect_images_is_selector_invariant(db, services, working_proposal):
    p = working_proposal()
    services.ledger.append_progress(
        db, proposal_id=p.id, requester_id=ENGINEER, payload=progress_payload("a"),
        uploads=uploads(images=[image()]),
    )
    services.ledger.append_progress(
        db, proposal_id=p.id, requester_id=ENGINEER, payload=progress_payload("b"),
        uploads=uploads(images=[image(), image()]),
    )
    stored = services.proposals.get(db, p.id)

    full = collect_images(stored)
    assert len(full) == 3
    for selector in (ALL, 1, 2):
        select_view(stored, selector)
        assert collect_images(stored) == full


def test_collect_images_accepts_legacy_shapes(db, working_proposal):
    p = working_proposal()
    doc = p.model_dump(mode="json", by_alias=True)
    anchor = doc["workProgress"][0]
    legacy = [
        dict(anchor, id="00000000-0000-0000-0000-000000000001",
             progressImages={"url": "https://cdn/x/single.jpg", "key": "x/single.jpg"}),
        dict(anchor, id="00000000-0000-0000-0000-000000000002",
             progressImages={"images": [
                 {"Location": "https://cdn/x/a.jpg", "key": "x/a.jpg", "size": 4, "eTag": "e"},
                 {"key": "x/no-url.jpg"},
             ]}),
        dict(anchor, id="00000000-0000-0000-0000-000000000003", progressImages=None),
    ]
    doc["workProgress"] = [anchor] + legacy

    refs = collect_images(WorkProposal.model_validate(doc))

    assert [(r.url, r.caption) for r in refs] == [
        ("https://cdn/x/single.jpg", "Work Progress image 2-1"),
        ("https://cdn/x/a.jpg", "Work Progress image 3-1"),
    ]


def _file_name(url):
    return url.rsplit("_", 1)[-1]


def test_collect_images_includes_first_entry(db, services, approved_proposal):
    p = approved_proposal()
    services.approvals.decide(
        db, proposal_id=p.id, stage="technical", action="approve",
        fields={"approvalNumber": "TA-1"}, requester_id="a-1",
        uploads=uploads(images=[image("ta.jpg")]),
    )
    for desc, names in (("zero", ["img0.jpg"]), ("one", ["img1a.jpg", "img1b.jpg"]), ("two", ["img2.jpg"])):
        services.ledger.append_progress(
            db, proposal_id=p.id, requester_id=ENGINEER, payload=progress_payload(desc),
            uploads=uploads(images=[image(n) for n in names]),
        )
    stored = services.proposals.get(db, p.id)

    refs = collect_images(stored)

    assert [(r.section, _file_name(r.url)) for r in refs] == [
        ("Technical Approval", "ta.jpg"),
        ("Work Progress 1", "img0.jpg"),
        ("Work Progress 2", "img1a.jpg"),
        ("Work Progress 2", "img1b.jpg"),
        ("Work Progress 3", "img2.jpg"),
    ]
    assert [e.desc for e in select_view(stored, ALL).work_progress] == ["one", "two"]
