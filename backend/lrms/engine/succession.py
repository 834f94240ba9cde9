"""Ownership succession — old owner -> new owner(s) splits.

Covers the transfer kinds (Varsai, Hayati ma hakh dakhal, Hakkami,
Vechand, Vehchani) and the Hukam 1st/2nd Right flows:

  - ``previous_owners`` builds the eligible-owner pool seen from a nondh
    as a running ledger: a transfer's old owner stays in the pool only
    with the area its own new owners did not take.
  - ``apply_transfer`` validates and applies one split.  Area is
    conserved: the new owners of one old owner never hold more than the
    old owner did.  A request over the cap is rejected, never clamped;
    whatever is not assigned stays with the old owner as residue.
  - 1st Right Hukams carry several independent transfers; 2nd Right
    Hukams copy every eligible owner in as new, independent holders.

Plain transfer kinds keep their single split on the detail itself
(``old_owner_name`` / ``old_owner_area`` / ``equal_distribution``) and
every owner relation is a new owner.  1st Right Hukams keep a list of
:class:`TransferSpec` on the adjudication; each lists its new-owner
relation ids.
"""

import logging
from dataclasses import replace

from lrms.config import (
    STATUS_VALID,
    AREA_EPSILON_SQM,
    AREA_ROUNDTRIP_TOLERANCE_SQM,
)
from lrms.engine.errors import (
    AreaExceededError,
    MissingOldOwnerError,
    EngineResult,
    NotFoundError,
    MalformedSnapshotError,
)
from lrms.engine.models import (
    Nondh,
    NondhDetail,
    OwnerRelation,
    OwnerRecord,
    SurveyRef,
    TransferSpec,
    OWNERSHIP_BEARING_KINDS,
    RIGHT_CLASSES,
    RIGHT_FIRST,
    RIGHT_SECOND,
    index_details,
)
from lrms.engine.ordering import canonical_index
from lrms.engine.utils import trace, normalize_name, derived_id

logger = logging.getLogger(__name__)

# Transfer states for display; Balanced is recommended, never enforced
STATE_UNPOPULATED = "Unpopulated"
STATE_OLD_OWNER_SELECTED = "OldOwnerSelected"
STATE_NEW_OWNERS_ASSIGNED = "NewOwnersAssigned"
STATE_BALANCED = "Balanced"


# ═══════════════════════════════════════════════════
# 1. TRANSFER VIEWS
# ═══════════════════════════════════════════════════

def carries_transfers(detail: NondhDetail) -> bool:
    """Transfer kinds and 1st Right Hukams consume an old owner's area."""
    return detail.is_transfer or (detail.is_adjudication and detail.right_class == RIGHT_FIRST)


def _plain_view(detail: NondhDetail) -> TransferSpec:
    return TransferSpec(
        id=detail.id,
        old_owner_name=detail.old_owner_name or "",
        old_owner_area=detail.old_owner_area or 0.0,
        new_owner_ids=[r.id for r in detail.owner_relations],
        equal_distribution=detail.equal_distribution,
        per_owner_area={r.id: r.area for r in detail.owner_relations},
    )


def _with_current_areas(detail: NondhDetail, spec: TransferSpec) -> TransferSpec:
    """Stored specs may hold stale areas; relations are the truth."""
    areas = {r.id: r.area for r in detail.owner_relations if r.id in spec.new_owner_ids}
    return replace(spec, new_owner_ids=list(spec.new_owner_ids), per_owner_area=areas)


def transfer_views(detail: NondhDetail) -> list[TransferSpec]:
    """Every split carried by a detail (empty for non-transfer details)."""
    if detail.is_transfer:
        return [_plain_view(detail)]
    if detail.is_adjudication and detail.right_class == RIGHT_FIRST:
        return [_with_current_areas(detail, t) for t in detail.adjudication.transfers]
    return []


def transfer_view(detail: NondhDetail, transfer_id: str | None = None) -> TransferSpec:
    """The split an edit applies to.

    Plain transfer kinds have exactly one; 1st Right Hukams pick by id
    (the first transfer when ``transfer_id`` is None).
    """
    if detail.is_transfer:
        return _plain_view(detail)
    if detail.is_adjudication and detail.right_class == RIGHT_FIRST:
        transfers = detail.adjudication.transfers
        for t in transfers:
            if transfer_id is None or t.id == transfer_id:
                return _with_current_areas(detail, t)
        raise NotFoundError(f"Detail {detail.id} has no transfer {transfer_id!r}")
    raise MalformedSnapshotError(
        f"{detail.amendment_kind} detail {detail.id} does not carry transfers"
    )


def _transfer_of_relation(detail: NondhDetail, relation_id: str) -> TransferSpec | None:
    for view in transfer_views(detail):
        if relation_id in view.new_owner_ids:
            return view
    return None


def _allocated(spec: TransferSpec) -> float:
    return sum(spec.per_owner_area.get(i, 0.0) for i in spec.new_owner_ids)


def remaining_area(detail: NondhDetail, transfer_id: str | None = None) -> float:
    """Old-owner area not assigned to any new owner (the residue).

    Negative only for snapshots that already break area conservation.
    """
    view = transfer_view(detail, transfer_id)
    return view.old_owner_area - _allocated(view)


def transfer_state(detail: NondhDetail, transfer_id: str | None = None) -> str:
    view = transfer_view(detail, transfer_id)
    if not view.old_owner_name.strip():
        return STATE_UNPOPULATED
    if not view.new_owner_ids:
        return STATE_OLD_OWNER_SELECTED
    if abs(view.old_owner_area - _allocated(view)) <= AREA_ROUNDTRIP_TOLERANCE_SQM:
        return STATE_BALANCED
    return STATE_NEW_OWNERS_ASSIGNED


# ═══════════════════════════════════════════════════
# 2. APPLY A SPLIT
# ═══════════════════════════════════════════════════

def apply_transfer(detail: NondhDetail, spec: TransferSpec) -> EngineResult:
    """Validate and apply one old owner -> new owners split.

    Equal distribution assigns ``old_owner_area / len(new_owner_ids)`` to
    each new owner; on plain transfer kinds the split always covers every
    owner relation of the detail.  Otherwise each requested area
    (``per_owner_area``, falling back to the relation's current area) is
    capped at the old owner's area minus what the other new owners
    already hold.

    Returns:
        EngineResult with the updated detail, or an ``AreaExceededError`` /
        ``MissingOldOwnerError``.  On failure the detail is unchanged.

    Raises:
        MalformedSnapshotError: the detail does not carry transfers, or a
            relation is already claimed by another transfer.
        NotFoundError: a new-owner id is not a relation of the detail.
    """
    if not carries_transfers(detail):
        raise MalformedSnapshotError(
            f"{detail.amendment_kind} detail {detail.id} does not carry transfers"
        )
    if not (spec.old_owner_name or "").strip():
        return EngineResult.failure(MissingOldOwnerError(detail_id=detail.id))

    relations = {r.id: r for r in detail.owner_relations}
    ids = list(dict.fromkeys(spec.new_owner_ids))
    for oid in ids:
        if oid not in relations:
            raise NotFoundError(f"Owner relation {oid} is not part of detail {detail.id}")

    old_area = float(spec.old_owner_area)
    if old_area < 0:
        raise ValueError("Old owner area must be non-negative")

    if detail.is_adjudication:
        for other in detail.adjudication.transfers:
            if other.id == spec.id:
                continue
            clash = set(other.new_owner_ids) & set(ids)
            if clash:
                raise MalformedSnapshotError(
                    f"Owner relation(s) {sorted(clash)} already belong to transfer {other.id}"
                )

    if spec.equal_distribution:
        if detail.is_transfer:
            # every relation of a plain transfer shares the split
            ids = [r.id for r in detail.owner_relations]
        share = old_area / len(ids) if ids else 0.0
        areas = {oid: share for oid in ids}
    else:
        # Plain transfer kinds: every relation is a new owner of this split
        allocated = 0.0
        if detail.is_transfer:
            allocated = sum(r.area for r in detail.owner_relations if r.id not in ids)
        wanted = {oid: float(spec.per_owner_area.get(oid, relations[oid].area)) for oid in ids}
        # owners keeping their current area are counted first, so a
        # rejection always names an edited owner
        pending = sorted(ids, key=lambda oid: wanted[oid] != relations[oid].area)
        areas = {}
        for oid in pending:
            requested = wanted[oid]
            if requested < 0:
                raise ValueError(f"Area for owner {oid} must be non-negative")
            cap = old_area - allocated
            if requested > cap + AREA_EPSILON_SQM:
                trace(logger, f"TRANSFER [{detail.id}] reject {oid}: {requested:.4f} > cap {cap:.4f}")
                return EngineResult.failure(AreaExceededError(
                    owner_id=oid, requested=requested, max_allowed=max(cap, 0.0),
                ))
            areas[oid] = requested
            allocated += requested

    new_relations = [
        replace(r, area=areas[r.id]) if r.id in areas else r
        for r in detail.owner_relations
    ]

    if detail.is_transfer:
        updated = replace(
            detail,
            old_owner_name=spec.old_owner_name.strip(),
            old_owner_area=old_area,
            equal_distribution=spec.equal_distribution,
            owner_relations=new_relations,
        )
    else:
        stored = TransferSpec(
            id=spec.id,
            old_owner_name=spec.old_owner_name.strip(),
            old_owner_area=old_area,
            new_owner_ids=ids,
            equal_distribution=spec.equal_distribution,
            per_owner_area=dict(areas),
        )
        transfers = list(detail.adjudication.transfers)
        for i, t in enumerate(transfers):
            if t.id == spec.id:
                transfers[i] = stored
                break
        else:
            transfers.append(stored)
        updated = replace(
            detail,
            owner_relations=new_relations,
            adjudication=replace(detail.adjudication, transfers=transfers),
        )

    trace(logger, f"TRANSFER [{detail.id}] {spec.old_owner_name} {old_area:.2f} -> {areas}")
    return EngineResult.success(updated)


# ═══════════════════════════════════════════════════
# 3. EDITING HELPERS
# ═══════════════════════════════════════════════════

def select_old_owner(
    detail: NondhDetail, owner: OwnerRecord, transfer_id: str | None = None
) -> EngineResult:
    """Pick the old owner (usually from ``previous_owners``).

    Existing new owners are re-checked against the new old-owner area.
    """
    view = transfer_view(detail, transfer_id)
    return apply_transfer(detail, replace(
        view, old_owner_name=owner.owner_name, old_owner_area=owner.area,
    ))


def add_owner_relation(
    detail: NondhDetail, relation: OwnerRelation, transfer_id: str | None = None
) -> EngineResult:
    """Add a new owner.  For transfers the old owner must be chosen first."""
    if detail.relation(relation.id) is not None:
        raise MalformedSnapshotError(f"Detail {detail.id} already has relation {relation.id}")
    if not carries_transfers(detail):
        return EngineResult.success(
            replace(detail, owner_relations=[*detail.owner_relations, relation])
        )

    view = transfer_view(detail, transfer_id)
    if not view.old_owner_name.strip():
        return EngineResult.failure(MissingOldOwnerError(detail_id=detail.id))
    staged = replace(detail, owner_relations=[*detail.owner_relations, relation])
    spec = replace(
        view,
        new_owner_ids=[*view.new_owner_ids, relation.id],
        per_owner_area={**view.per_owner_area, relation.id: relation.area},
    )
    return apply_transfer(staged, spec)


def remove_owner_relation(detail: NondhDetail, relation_id: str) -> EngineResult:
    """Drop an owner; equal distribution re-splits among the rest."""
    if detail.relation(relation_id) is None:
        raise NotFoundError(f"Detail {detail.id} has no owner relation {relation_id}")
    view = _transfer_of_relation(detail, relation_id)
    remaining = [r for r in detail.owner_relations if r.id != relation_id]
    staged = replace(detail, owner_relations=remaining)
    if view is None:
        return EngineResult.success(staged)

    spec = replace(
        view,
        new_owner_ids=[i for i in view.new_owner_ids if i != relation_id],
        per_owner_area={k: v for k, v in view.per_owner_area.items() if k != relation_id},
    )
    if staged.is_adjudication:
        # shrink the stored spec first so the clash check sees the new membership
        transfers = [spec if t.id == spec.id else t for t in staged.adjudication.transfers]
        staged = replace(staged, adjudication=replace(staged.adjudication, transfers=transfers))
    if not spec.old_owner_name.strip():
        return EngineResult.success(staged)
    return apply_transfer(staged, spec)


def set_owner_area(detail: NondhDetail, relation_id: str, area: float) -> EngineResult:
    """Set one owner's area, enforcing the old owner's cap."""
    relation = detail.relation(relation_id)
    if relation is None:
        raise NotFoundError(f"Detail {detail.id} has no owner relation {relation_id}")
    if area < 0:
        raise ValueError("Area must be non-negative")
    view = _transfer_of_relation(detail, relation_id)
    if view is None:
        return EngineResult.success(replace(
            detail,
            owner_relations=[replace(r, area=float(area)) if r.id == relation_id else r
                             for r in detail.owner_relations],
        ))
    if view.equal_distribution:
        raise ValueError("Areas are assigned automatically while equal distribution is on")
    if not view.old_owner_name.strip():
        return EngineResult.failure(MissingOldOwnerError(detail_id=detail.id))
    return apply_transfer(detail, replace(
        view, per_owner_area={**view.per_owner_area, relation_id: float(area)},
    ))


def set_equal_distribution(
    detail: NondhDetail, enabled: bool, transfer_id: str | None = None
) -> EngineResult:
    """Toggle equal distribution; enabling re-splits the old owner's area."""
    view = transfer_view(detail, transfer_id)
    spec = replace(view, equal_distribution=enabled)
    if not view.old_owner_name.strip():
        # nothing to split yet, only remember the flag
        if detail.is_transfer:
            return EngineResult.success(replace(detail, equal_distribution=enabled))
        transfers = [spec if t.id == spec.id else t for t in detail.adjudication.transfers]
        return EngineResult.success(
            replace(detail, adjudication=replace(detail.adjudication, transfers=transfers))
        )
    return apply_transfer(detail, spec)


# ═══════════════════════════════════════════════════
# 4. HUKAM 1ST / 2ND RIGHT
# ═══════════════════════════════════════════════════

def _require_adjudication(detail: NondhDetail):
    if not detail.is_adjudication or detail.adjudication is None:
        raise MalformedSnapshotError(f"Detail {detail.id} is not an adjudication (Hukam)")


def add_transfer(detail: NondhDetail) -> NondhDetail:
    """Open another independent transfer on a 1st Right Hukam."""
    _require_adjudication(detail)
    existing = {t.id for t in detail.adjudication.transfers}
    n = len(existing)
    while derived_id(detail.id, "transfer", n) in existing:
        n += 1
    spec = TransferSpec(id=derived_id(detail.id, "transfer", n))
    return replace(detail, adjudication=replace(
        detail.adjudication, transfers=[*detail.adjudication.transfers, spec],
    ))


def remove_transfer(detail: NondhDetail, transfer_id: str) -> NondhDetail:
    """Drop a transfer together with its new-owner relations."""
    _require_adjudication(detail)
    target = next((t for t in detail.adjudication.transfers if t.id == transfer_id), None)
    if target is None:
        raise NotFoundError(f"Detail {detail.id} has no transfer {transfer_id!r}")
    dropped = set(target.new_owner_ids)
    return replace(
        detail,
        owner_relations=[r for r in detail.owner_relations if r.id not in dropped],
        adjudication=replace(
            detail.adjudication,
            transfers=[t for t in detail.adjudication.transfers if t.id != transfer_id],
        ),
    )


def set_right_class(detail: NondhDetail, right_class: str) -> NondhDetail:
    """Choose 1st / 2nd Right ("" clears it).

    Choosing 1st Right opens one empty transfer when there is none.
    """
    _require_adjudication(detail)
    if right_class and right_class not in RIGHT_CLASSES:
        raise ValueError(f"Unknown right class: {right_class!r}")
    updated = replace(detail, adjudication=replace(detail.adjudication, right_class=right_class))
    if right_class == RIGHT_FIRST and not updated.adjudication.transfers:
        updated = add_transfer(updated)
    return updated


# ═══════════════════════════════════════════════════
# 5. ELIGIBLE-OWNER POOL
# ═══════════════════════════════════════════════════

def _in_scope(nondh: Nondh, survey_ref: SurveyRef | None) -> bool:
    if survey_ref is None or not nondh.affected_survey_refs:
        return True
    return any(r.matches(survey_ref) for r in nondh.affected_survey_refs)


def _remember(pool: dict[str, OwnerRecord], record: OwnerRecord):
    # later canonical position wins and moves to the end
    key = normalize_name(record.owner_name)
    pool.pop(key, None)
    pool[key] = record


def previous_owners(
    order: list[Nondh],
    details: list[NondhDetail],
    survey_ref: SurveyRef | None,
    before_nondh_id: str,
) -> list[OwnerRecord]:
    """Owners a nondh may draw from, as a running ledger.

    Scans canonical order strictly before ``before_nondh_id``.  Only
    *valid* (Pramanik) ownership-bearing details contribute; Radd and
    Na manjoor predecessors are skipped entirely.  A transfer's old owner
    is re-added with only its undistributed area, and dropped once its
    area is fully passed on.  Per owner name the latest entry wins.

    ``survey_ref`` (optional) restricts the scan to nondhs and relations
    for that parcel.

    Raises:
        NotFoundError: ``before_nondh_id`` is not in ``order``.
        MalformedSnapshotError: details do not match ``order`` one to one.
    """
    by_nondh = index_details(order, details)
    idx = canonical_index(order, before_nondh_id)
    pool: dict[str, OwnerRecord] = {}

    for nondh in order[:idx]:
        detail = by_nondh[nondh.id]
        if detail.status != STATUS_VALID:
            trace(logger, f"POOL skip {nondh.number}: status={detail.status}")
            continue
        if detail.amendment_kind not in OWNERSHIP_BEARING_KINDS or not _in_scope(nondh, survey_ref):
            continue

        for view in transfer_views(detail):
            if not view.old_owner_name.strip():
                continue
            residue = view.old_owner_area - _allocated(view)
            key = normalize_name(view.old_owner_name)
            if residue > AREA_EPSILON_SQM:
                _remember(pool, OwnerRecord(
                    owner_name=view.old_owner_name,
                    area=residue,
                    nondh_id=nondh.id,
                    nondh_number=nondh.number,
                    amendment_kind=detail.amendment_kind,
                    survey_ref=survey_ref,
                    is_residue=True,
                    right_class=detail.right_class,
                ))
            else:
                pool.pop(key, None)

        for r in detail.owner_relations:
            if not r.owner_name.strip():
                continue
            if survey_ref is not None and r.survey_ref is not None and not r.survey_ref.matches(survey_ref):
                continue
            _remember(pool, OwnerRecord(
                owner_name=r.owner_name,
                area=r.area,
                nondh_id=nondh.id,
                nondh_number=nondh.number,
                amendment_kind=detail.amendment_kind,
                relation_id=r.id,
                survey_ref=r.survey_ref,
                right_class=detail.right_class,
            ))

    owners = list(pool.values())
    trace(logger, f"POOL before {order[idx].number}: {[(o.owner_name, round(o.area, 2)) for o in owners]}")
    return owners


def adjudication_owner_pool(
    order: list[Nondh],
    details: list[NondhDetail],
    before_nondh_id: str,
    right_class: str,
    survey_ref: SurveyRef | None = None,
) -> list[OwnerRecord] | dict[str, list[OwnerRecord]]:
    """Owners offered to a Hukam.

    2nd Right: the whole pool.  1st Right: ``{"old": ..., "new": ...}``,
    where ``new`` are holders introduced by earlier 2nd Right Hukams and
    ``old`` is everyone else.
    """
    if right_class not in RIGHT_CLASSES:
        raise ValueError(f"Unknown right class: {right_class!r}")
    pool = previous_owners(order, details, survey_ref, before_nondh_id)
    if right_class == RIGHT_SECOND:
        return pool
    second = [o for o in pool if o.amendment_kind == "Adjudication" and o.right_class == RIGHT_SECOND]
    first = [o for o in pool if o not in second]
    return {"old": first, "new": second}


def import_second_right_owners(
    order: list[Nondh], details: list[NondhDetail], detail_id: str
) -> NondhDetail:
    """Copy every eligible owner onto a 2nd Right Hukam as a new holder.

    No old owner is consumed.  Relation ids are derived from the source
    entry, so importing twice adds nothing the second time.  The copied
    relations start valid; run the validity chain afterwards.
    """
    detail = next((d for d in details if d.id == detail_id), None)
    if detail is None:
        raise NotFoundError(f"Detail {detail_id} is not in the snapshot")
    _require_adjudication(detail)
    if detail.right_class != RIGHT_SECOND:
        raise MalformedSnapshotError(f"Detail {detail_id} is not a 2nd Right adjudication")

    existing = {r.id for r in detail.owner_relations}
    added: list[OwnerRelation] = []
    for owner in previous_owners(order, details, None, detail.nondh_id):
        rid = derived_id(detail.id, owner.nondh_id, owner.relation_id or "residue",
                         normalize_name(owner.owner_name))
        if rid in existing:
            continue
        added.append(OwnerRelation(
            id=rid,
            owner_name=owner.owner_name,
            area=owner.area,
            survey_ref=owner.survey_ref,
        ))
    logger.info(f"2nd Right import [{detail_id}]: {len(added)} owner(s) copied")
    return replace(detail, owner_relations=[*detail.owner_relations, *added])
