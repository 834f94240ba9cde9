"""Affected-nondh propagation for Hukam (adjudication) details.

A Hukam lists the nondhs it rules on by *display number*.  Marking one of
those entries Radd copies the reason onto the referenced nondh's own
detail, changes its status, and re-runs the validity chain for every
nondh before it.  Propagation is one way: removing an entry later does
not undo anything.
"""

import logging
from dataclasses import dataclass, field, replace

from lrms.config import STATUS_INVALID, NONDH_STATUSES
from lrms.engine.errors import (
    EngineResult,
    MissingReasonError,
    UnknownReferenceError,
    NotFoundError,
    MalformedSnapshotError,
)
from lrms.engine.models import AffectedEntry, Nondh, NondhDetail, index_details
from lrms.engine.ordering import canonical_index, find_by_number
from lrms.engine.utils import trace, derived_id, normalize_nondh_number
from lrms.engine.validity import resolve_from

logger = logging.getLogger(__name__)


@dataclass
class PropagationResult:
    details: list[NondhDetail]
    touched_nondh_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "details": [d.to_dict() for d in self.details],
            "touched_nondh_ids": list(self.touched_nondh_ids),
        }


def _find_detail(details: list[NondhDetail], detail_id: str) -> NondhDetail:
    for d in details:
        if d.id == detail_id:
            return d
    raise NotFoundError(f"Detail {detail_id} is not in the snapshot")


def _adjudication_of(details: list[NondhDetail], detail_id: str) -> NondhDetail:
    detail = _find_detail(details, detail_id)
    if not detail.is_adjudication or detail.adjudication is None:
        raise MalformedSnapshotError(f"Detail {detail_id} is not an adjudication (Hukam)")
    return detail


def propagate_affected_status(
    order: list[Nondh],
    details: list[NondhDetail],
    adjudication_detail_id: str,
    affected_entry_id: str,
    new_status: str,
    reason: str | None = None,
) -> EngineResult:
    """Set an affected entry's status and push it onto the referenced nondh.

    Returns:
        EngineResult with a :class:`PropagationResult` (new detail list in
        input order + ids of nondhs whose detail changed, in canonical
        order), or ``MissingReasonError`` / ``UnknownReferenceError``.

    Raises:
        NotFoundError: unknown detail or affected entry id.
        MalformedSnapshotError: the detail is not an adjudication, or the
            snapshot is structurally broken.
    """
    if new_status not in NONDH_STATUSES:
        raise ValueError(f"Unknown status: {new_status!r}")
    index_details(order, details)
    hukam = _adjudication_of(details, adjudication_detail_id)
    entry = next((e for e in hukam.adjudication.affected_entries if e.id == affected_entry_id), None)
    if entry is None:
        raise NotFoundError(f"Affected entry {affected_entry_id} is not on detail {adjudication_detail_id}")

    reason = (reason or "").strip()
    if new_status == STATUS_INVALID and not reason:
        return EngineResult.failure(MissingReasonError(detail_id=adjudication_detail_id))

    target = find_by_number(order, entry.referenced_nondh_number)
    if target is None:
        return EngineResult.failure(UnknownReferenceError(referenced_number=entry.referenced_nondh_number))

    kept_reason = reason if new_status == STATUS_INVALID else None
    updated_entry = replace(entry, status=new_status, invalid_reason=kept_reason)
    updated_hukam = replace(hukam, adjudication=replace(
        hukam.adjudication,
        affected_entries=[updated_entry if e.id == entry.id else e
                          for e in hukam.adjudication.affected_entries],
    ))

    staged: list[NondhDetail] = []
    for d in details:
        if d.id == hukam.id:
            d = updated_hukam
        if d.nondh_id == target.id:
            d = replace(d, status=new_status, invalid_reason=kept_reason)
        staged.append(d)

    target_index = canonical_index(order, target.id)
    resolved = resolve_from(order, staged, target_index)

    before = {d.nondh_id: d for d in details}
    after = {d.nondh_id: d for d in resolved}
    touched = [
        n.id for n in order
        if n.id == target.id or before[n.id] != after[n.id]
    ]
    trace(logger, f"AFFECTED {entry.referenced_nondh_number} -> {new_status}; touched {len(touched)}")
    return EngineResult.success(PropagationResult(details=resolved, touched_nondh_ids=touched))


def add_affected_entry(
    detail: NondhDetail, referenced_nondh_number: str, entry_id: str | None = None
) -> NondhDetail:
    """Append a valid entry for ``referenced_nondh_number`` to a Hukam."""
    if not detail.is_adjudication or detail.adjudication is None:
        raise MalformedSnapshotError(f"Detail {detail.id} is not an adjudication (Hukam)")
    entries = detail.adjudication.affected_entries
    if entry_id is None:
        n = len(entries)
        taken = {e.id for e in entries}
        while derived_id(detail.id, "affected", n) in taken:
            n += 1
        entry_id = derived_id(detail.id, "affected", n)
    entry = AffectedEntry(id=entry_id, referenced_nondh_number=normalize_nondh_number(referenced_nondh_number))
    return replace(detail, adjudication=replace(detail.adjudication, affected_entries=[*entries, entry]))


def remove_affected_entry(detail: NondhDetail, entry_id: str) -> NondhDetail:
    """Drop an entry.  Whatever it already propagated stays in place."""
    if not detail.is_adjudication or detail.adjudication is None:
        raise MalformedSnapshotError(f"Detail {detail.id} is not an adjudication (Hukam)")
    entries = detail.adjudication.affected_entries
    if not any(e.id == entry_id for e in entries):
        raise NotFoundError(f"Affected entry {entry_id} is not on detail {detail.id}")
    return replace(detail, adjudication=replace(
        detail.adjudication, affected_entries=[e for e in entries if e.id != entry_id],
    ))
