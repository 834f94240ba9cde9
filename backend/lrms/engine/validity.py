"""Validity chain — parity rule over the canonical order.

A nondh at position *i* is legally valid iff the number of *invalid*
(Radd) details at positions ``i+1..end`` is even.  Each later Radd flips
everything before it; two cancel out.

The derived value is written to every owner relation's ``is_valid``; a
single relation is never allowed to disagree with the chain.

Both entry points are pure: they return a new detail list in the same
order as the input and never touch the inputs.
"""

import logging
from dataclasses import replace

from lrms.config import STATUS_INVALID
from lrms.engine.models import Nondh, NondhDetail, index_details
from lrms.engine.utils import trace

logger = logging.getLogger(__name__)


def _invalid_counts_after(order: list[Nondh], by_nondh: dict[str, NondhDetail]) -> list[int]:
    """``counts[i]`` = invalid details strictly after position i."""
    counts = [0] * len(order)
    running = 0
    for i in range(len(order) - 1, -1, -1):
        counts[i] = running
        if by_nondh[order[i].id].status == STATUS_INVALID:
            running += 1
    return counts


def derived_validity(order: list[Nondh], details: list[NondhDetail]) -> dict[str, bool]:
    """nondh id -> chain validity, without rewriting any relation."""
    by_nondh = index_details(order, details)
    counts = _invalid_counts_after(order, by_nondh)
    return {n.id: counts[i] % 2 == 0 for i, n in enumerate(order)}


def _apply(detail: NondhDetail, should_be_valid: bool) -> NondhDetail:
    if all(r.is_valid == should_be_valid for r in detail.owner_relations):
        return detail
    return replace(
        detail,
        owner_relations=[replace(r, is_valid=should_be_valid) for r in detail.owner_relations],
    )


def resolve(order: list[Nondh], details: list[NondhDetail]) -> list[NondhDetail]:
    """Recompute cached owner-relation validity for every nondh.

    Raises:
        MalformedSnapshotError: the details do not match ``order`` one to one.
    """
    validity = derived_validity(order, details)
    resolved = [_apply(d, validity[d.nondh_id]) for d in details]
    trace(logger, f"RESOLVE {sum(1 for v in validity.values() if not v)}/{len(validity)} nondh(s) invalid by chain")
    return resolved


def resolve_from(
    order: list[Nondh], details: list[NondhDetail], from_index: int
) -> list[NondhDetail]:
    """Recompute only positions ``0..from_index-1``.

    Used after a status change at ``from_index``: the changed nondh's own
    successors are unaffected by it, its predecessors are.  Parity still
    counts the whole tail, so the result on the recomputed prefix is
    identical to :func:`resolve`.
    """
    if from_index < 0 or from_index > len(order):
        raise ValueError(f"from_index {from_index} out of range 0..{len(order)}")
    by_nondh = index_details(order, details)
    counts = _invalid_counts_after(order, by_nondh)
    prefix = {order[i].id: counts[i] % 2 == 0 for i in range(from_index)}
    trace(logger, f"RESOLVE_FROM index={from_index} recomputing {len(prefix)} nondh(s)")
    return [_apply(d, prefix[d.nondh_id]) if d.nondh_id in prefix else d for d in details]
