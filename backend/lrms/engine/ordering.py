"""Canonical legal ordering of nondhs.

The order is the single source of truth for "which amendment came before
which".  It is recomputed on every call, never cached, because edits to a
nondh's number or survey refs move it.

Sort key, in priority:
  1. primary survey-ref kind (survey < block < resurvey); a nondh touching
     both a survey and a block number is a *survey* nondh
  2. leading integer of the display number
  3. remaining ``-`` / ``/`` segments, numerically, left to right
  4. the raw number text, then the id
"""

import logging
from datetime import datetime
from typing import Optional

from lrms.engine.errors import MalformedSnapshotError, NotFoundError
from lrms.engine.models import (
    Nondh,
    NondhDetail,
    SURVEY_REF_KINDS,
    DEFAULT_SURVEY_REF_KIND,
    index_details,
)
from lrms.engine.utils import (
    trace,
    parse_date,
    leading_int,
    number_segments,
    normalize_nondh_number,
)

logger = logging.getLogger(__name__)


def primary_ref_kind(nondh: Nondh) -> str:
    """Highest-priority survey-ref kind present (first match wins)."""
    kinds = {r.kind for r in nondh.affected_survey_refs}
    for kind in SURVEY_REF_KINDS:
        if kind in kinds:
            return kind
    return DEFAULT_SURVEY_REF_KIND


def _segment_key(segment: str) -> tuple:
    # numeric segments first (by value), then text segments
    if segment.isdigit():
        return (0, int(segment), "")
    return (1, 0, segment.lower())


def _sort_key(nondh: Nondh) -> tuple:
    number = normalize_nondh_number(nondh.number)
    return (
        SURVEY_REF_KINDS.index(primary_ref_kind(nondh)),
        leading_int(number),
        tuple(_segment_key(s) for s in number_segments(number)),
        number,
        nondh.id,
    )


def canonical_order(nondhs: list[Nondh]) -> list[Nondh]:
    """Total, deterministic order over a set of nondhs.

    Raises:
        MalformedSnapshotError: two nondhs share an id.
    """
    seen: set[str] = set()
    for n in nondhs:
        if n.id in seen:
            raise MalformedSnapshotError(f"Duplicate nondh id: {n.id}")
        seen.add(n.id)
    order = sorted(nondhs, key=_sort_key)
    trace(logger, f"ORDER {[n.number for n in order]}")
    return order


def canonical_index(order: list[Nondh], nondh_id: str) -> int:
    for i, n in enumerate(order):
        if n.id == nondh_id:
            return i
    raise NotFoundError(f"Nondh {nondh_id} is not in the order")


def find_by_number(order: list[Nondh], number: str) -> Optional[Nondh]:
    """First nondh (in canonical order) whose display number matches."""
    target = normalize_nondh_number(number)
    for n in order:
        if normalize_nondh_number(n.number) == target:
            return n
    return None


# ═══════════════════════════════════════════════════
# DATE ORDER
# ═══════════════════════════════════════════════════

def date_bounds(
    order: list[Nondh], details: list[NondhDetail], nondh_id: str
) -> tuple[str, str]:
    """Dates of the canonical neighbours: ``(previous_date, next_date)``.

    Either side is "" when there is no neighbour or it has no date.
    """
    by_nondh = index_details(order, details)
    idx = canonical_index(order, nondh_id)
    min_date = by_nondh[order[idx - 1].id].date if idx > 0 else ""
    max_date = by_nondh[order[idx + 1].id].date if idx < len(order) - 1 else ""
    return (min_date or "", max_date or "")


def is_valid_date_order(
    order: list[Nondh], details: list[NondhDetail], nondh_id: str, new_date: str
) -> bool:
    """A nondh's date must fall strictly between its neighbours' dates."""
    if not new_date:
        return True
    candidate = parse_date(new_date)
    if candidate is None:
        return False
    min_date, max_date = date_bounds(order, details, nondh_id)
    lower: Optional[datetime] = parse_date(min_date)
    upper: Optional[datetime] = parse_date(max_date)
    if lower and candidate <= lower:
        return False
    if upper and candidate >= upper:
        return False
    return True
