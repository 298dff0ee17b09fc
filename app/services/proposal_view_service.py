# app/services/proposal_view_service.py
from __future__ import annotations

from typing import Any, Callable, List, Union

from app.core.errors import InvalidArgument
from app.schemas.primitives import Attachment
from app.schemas.work_proposals import ImageRef, WorkProposal

ALL = "all"

Selector = Union[str, int]


def parse_selector(raw: Any) -> Selector:
    """
    Lenient caller-side parsing: a missing, blank or unparseable selector
    means "all". Integers (or digit strings) pass through for select_view
    to range-check.
    """
    if raw is None or isinstance(raw, bool):
        return ALL
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text or text.lower() == ALL:
        return ALL
    try:
        return int(text)
    except ValueError:
        return ALL


def select_view(proposal: WorkProposal, selector: Selector) -> WorkProposal:
    """
    Read-only projection of the proposal for display.

    Index 0 of workProgress is the anchor and is never shown:
      "all" -> entries 1..N-1
      k     -> [entry k], valid for 1 <= k <= N-1
    """
    entries = proposal.work_progress
    if selector == ALL:
        shown = list(entries[1:])
    else:
        if isinstance(selector, bool) or not isinstance(selector, int):
            raise InvalidArgument(f"Entry selector must be 'all' or an integer, got {selector!r}.", fields=["entry"])
        if selector < 1 or selector >= len(entries):
            raise InvalidArgument(
                f"Entry {selector} is out of range (valid: 1..{len(entries) - 1}).", fields=["entry"]
            )
        shown = [entries[selector]]
    return proposal.model_copy(update={"work_progress": shown})


def _refs(images: List[Attachment], section: str, caption: Callable[[int], str]) -> List[ImageRef]:
    return [
        ImageRef(url=img.url, section=section, caption=caption(n))
        for n, img in enumerate((i for i in images if i.url), start=1)
    ]


def collect_images(proposal: WorkProposal) -> List[ImageRef]:
    """
    Every image across every stage, in display order. Always computed from the
    full stored aggregate (anchor included), independent of any selector.
    """
    out: List[ImageRef] = []
    stages = (
        ("Technical Approval", proposal.technical_approval),
        ("Administrative Approval", proposal.administrative_approval),
        ("Tender Process", proposal.tender_process),
        ("Work Order", proposal.work_order),
    )
    for section, record in stages:
        if record is not None:
            out.extend(_refs(record.attached_images, section, lambda n, s=section: f"{s} image {n}"))

    for i, entry in enumerate(proposal.work_progress):
        out.extend(_refs(
            entry.progress_images,
            f"Work Progress {i + 1}",
            lambda n, i=i: f"Work Progress image {i + 1}-{n}",
        ))
    return out
