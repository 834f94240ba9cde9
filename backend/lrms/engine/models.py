"""Snapshot data model for the nondh engine.

A land record snapshot is a flat list of :class:`Nondh` slots plus exactly
one :class:`NondhDetail` per slot.  Every engine function takes these
dataclasses and returns *new* instances; nothing here is mutated in place
by the engine.

All areas are canonical square meters (float).  Acre-guntha is a
presentation view handled by :mod:`lrms.engine.area`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Any

from lrms.config import (
    STATUS_VALID,
    STATUS_INVALID,
    NONDH_STATUSES,
    IMPORT_DEFAULT_TENURE,
)
from lrms.engine.errors import MalformedSnapshotError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════
# VOCABULARY
# ═══════════════════════════════════════════════════

# Priority order for canonical ordering: survey > block > resurvey
SURVEY_REF_KINDS = ("survey", "block", "resurvey")
DEFAULT_SURVEY_REF_KIND = "survey"

AMENDMENT_KINDS = (
    "Possessor",            # Kabjedaar
    "Consolidation",        # Ekatrikaran
    "Inheritance",          # Varsai
    "LifeRightTransfer",    # Hayati ma hakh dakhal
    "GiftTransfer",         # Hakkami
    "SaleTransfer",         # Vechand
    "Correction",           # Durasti
    "Promulgation",
    "Adjudication",         # Hukam
    "DistributionRight",    # Vehchani
    "Encumbrance",          # Bojo
    "Other",
)

# Kinds that move area from one old owner to one or more new owners
TRANSFER_KINDS = frozenset({
    "Inheritance", "LifeRightTransfer", "GiftTransfer",
    "SaleTransfer", "DistributionRight",
})

# Kinds whose owner relations feed the eligible-owner pool
OWNERSHIP_BEARING_KINDS = TRANSFER_KINDS | {
    "Possessor", "Consolidation", "Promulgation", "Adjudication",
}

RIGHT_FIRST = "first"
RIGHT_SECOND = "second"
RIGHT_CLASSES = (RIGHT_FIRST, RIGHT_SECOND)

# Hukam issuing authorities
ADJUDICATION_AUTHORITIES = (
    "SSRD", "Collector", "Collector_ganot", "Prant", "Mamlajdaar",
    "GRT", "Jasu", "ALT Krushipanch", "DILR",
)

TENURE_TYPES = (
    "Navi", "Juni", "Kheti_Kheti_ma_Juni", "NA",
    "Bin_Kheti_Pre_Patra", "Prati_bandhit_satta_prakar",
)


def is_transfer_kind(kind: str) -> bool:
    return kind in TRANSFER_KINDS


def _float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedSnapshotError(f"Not a number: {value!r}")


# ═══════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════

@dataclass
class SurveyRef:
    """A parcel reference: number + classification scheme."""
    number: str
    kind: str = DEFAULT_SURVEY_REF_KIND

    def matches(self, other: "SurveyRef | None") -> bool:
        if other is None:
            return True
        return (self.number.strip().lower() == other.number.strip().lower()
                and self.kind == other.kind)

    def to_dict(self) -> dict:
        return {"number": self.number, "kind": self.kind}

    @classmethod
    def from_dict(cls, data: dict | None) -> "SurveyRef | None":
        if not data:
            return None
        kind = data.get("kind") or DEFAULT_SURVEY_REF_KIND
        if kind not in SURVEY_REF_KINDS:
            raise MalformedSnapshotError(f"Unknown survey reference kind: {kind!r}")
        return cls(number=str(data.get("number", "")).strip(), kind=kind)


@dataclass
class Nondh:
    """An amendment slot.  Identity is immutable; survey refs may be edited."""
    id: str
    number: str
    affected_survey_refs: list[SurveyRef] = field(default_factory=list)
    document_ref: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Nondh":
        if not data.get("id"):
            raise MalformedSnapshotError("Nondh without an id")
        refs = [SurveyRef.from_dict(r) for r in (data.get("affected_survey_refs") or [])]
        return cls(
            id=str(data["id"]),
            number=str(data.get("number", "")).strip(),
            affected_survey_refs=[r for r in refs if r is not None],
            document_ref=data.get("document_ref"),
        )


@dataclass
class OwnerRelation:
    """One owner holding an area under a nondh.

    ``is_valid`` is a cached flag owned by the validity chain; callers never
    set it by hand.
    """
    id: str
    owner_name: str
    area: float = 0.0                 # square meters
    is_valid: bool = True
    survey_ref: SurveyRef | None = None
    tenure: str = IMPORT_DEFAULT_TENURE

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "OwnerRelation":
        if not data.get("id"):
            raise MalformedSnapshotError("Owner relation without an id")
        return cls(
            id=str(data["id"]),
            owner_name=str(data.get("owner_name") or ""),
            area=_float(data.get("area")),
            is_valid=bool(data.get("is_valid", True)),
            survey_ref=SurveyRef.from_dict(data.get("survey_ref")),
            tenure=data.get("tenure") or IMPORT_DEFAULT_TENURE,
        )


@dataclass
class TransferSpec:
    """One old owner -> new owners split.

    Plain transfer kinds carry their single split on the detail itself;
    first-right adjudications keep a list of these on the adjudication.
    """
    id: str
    old_owner_name: str = ""
    old_owner_area: float = 0.0
    new_owner_ids: list[str] = field(default_factory=list)
    equal_distribution: bool = False
    per_owner_area: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TransferSpec":
        return cls(
            id=str(data.get("id") or ""),
            old_owner_name=str(data.get("old_owner_name") or ""),
            old_owner_area=_float(data.get("old_owner_area")),
            new_owner_ids=[str(i) for i in (data.get("new_owner_ids") or [])],
            equal_distribution=bool(data.get("equal_distribution", False)),
            per_owner_area={
                str(k): _float(v) for k, v in (data.get("per_owner_area") or {}).items()
            },
        )


@dataclass
class AffectedEntry:
    """A Hukam's reference to another nondh, by display number."""
    id: str
    referenced_nondh_number: str
    status: str = STATUS_VALID
    invalid_reason: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AffectedEntry":
        status = data.get("status") or STATUS_VALID
        if status not in NONDH_STATUSES:
            raise MalformedSnapshotError(f"Unknown affected entry status: {status!r}")
        return cls(
            id=str(data.get("id") or ""),
            referenced_nondh_number=str(data.get("referenced_nondh_number") or "").strip(),
            status=status,
            invalid_reason=data.get("invalid_reason") or None,
        )


@dataclass
class Adjudication:
    """Hukam-only substructure."""
    authority: str = ""
    adjudication_date: str = ""
    right_class: str = ""             # "", "first" or "second"
    affected_entries: list[AffectedEntry] = field(default_factory=list)
    transfers: list[TransferSpec] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "Adjudication | None":
        if data is None:
            return None
        right_class = data.get("right_class") or ""
        if right_class and right_class not in RIGHT_CLASSES:
            raise MalformedSnapshotError(f"Unknown right class: {right_class!r}")
        return cls(
            authority=str(data.get("authority") or ""),
            adjudication_date=str(data.get("adjudication_date") or ""),
            right_class=right_class,
            affected_entries=[AffectedEntry.from_dict(a) for a in (data.get("affected_entries") or [])],
            transfers=[TransferSpec.from_dict(t) for t in (data.get("transfers") or [])],
        )


@dataclass
class NondhDetail:
    """The substantive content of one nondh (1:1 with :class:`Nondh`)."""
    id: str
    nondh_id: str
    amendment_kind: str = "Other"
    status: str = STATUS_VALID
    invalid_reason: str | None = None
    date: str = ""
    old_owner_name: str | None = None
    old_owner_area: float | None = None
    equal_distribution: bool = False
    owner_relations: list[OwnerRelation] = field(default_factory=list)
    adjudication: Adjudication | None = None

    @property
    def is_transfer(self) -> bool:
        return self.amendment_kind in TRANSFER_KINDS

    @property
    def is_adjudication(self) -> bool:
        return self.amendment_kind == "Adjudication"

    @property
    def right_class(self) -> str:
        return self.adjudication.right_class if self.adjudication else ""

    def relation(self, relation_id: str) -> OwnerRelation | None:
        for r in self.owner_relations:
            if r.id == relation_id:
                return r
        return None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "NondhDetail":
        if not data.get("id") or not data.get("nondh_id"):
            raise MalformedSnapshotError("Nondh detail without id / nondh_id")
        kind = data.get("amendment_kind") or "Other"
        if kind not in AMENDMENT_KINDS:
            raise MalformedSnapshotError(f"Unknown amendment kind: {kind!r}")
        status = data.get("status") or STATUS_VALID
        if status not in NONDH_STATUSES:
            raise MalformedSnapshotError(f"Unknown nondh status: {status!r}")
        old_area = data.get("old_owner_area")
        return cls(
            id=str(data["id"]),
            nondh_id=str(data["nondh_id"]),
            amendment_kind=kind,
            status=status,
            invalid_reason=data.get("invalid_reason") or None,
            date=str(data.get("date") or ""),
            old_owner_name=data.get("old_owner_name") or None,
            old_owner_area=None if old_area is None else _float(old_area),
            equal_distribution=bool(data.get("equal_distribution", False)),
            owner_relations=[OwnerRelation.from_dict(r) for r in (data.get("owner_relations") or [])],
            adjudication=Adjudication.from_dict(data.get("adjudication")),
        )


@dataclass
class OwnerRecord:
    """An entry of the eligible-owner pool seen from a later nondh."""
    owner_name: str
    area: float
    nondh_id: str
    nondh_number: str
    amendment_kind: str
    relation_id: str | None = None    # None when the entry is an old owner's residue
    survey_ref: SurveyRef | None = None
    is_residue: bool = False
    right_class: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "OwnerRecord":
        return cls(
            owner_name=str(data.get("owner_name") or ""),
            area=_float(data.get("area")),
            nondh_id=str(data.get("nondh_id") or ""),
            nondh_number=str(data.get("nondh_number") or ""),
            amendment_kind=data.get("amendment_kind") or "Other",
            relation_id=data.get("relation_id"),
            survey_ref=SurveyRef.from_dict(data.get("survey_ref")),
            is_residue=bool(data.get("is_residue", False)),
            right_class=data.get("right_class") or "",
        )


@dataclass
class Snapshot:
    """Everything the engine needs for one land record."""
    land_record_id: str
    nondhs: list[Nondh] = field(default_factory=list)
    details: list[NondhDetail] = field(default_factory=list)
    revision: int = 0

    def to_dict(self) -> dict:
        return {
            "land_record_id": self.land_record_id,
            "revision": self.revision,
            "nondhs": [n.to_dict() for n in self.nondhs],
            "details": [d.to_dict() for d in self.details],
        }

    _LOADABLE_FIELDS = frozenset({"land_record_id", "revision", "nondhs", "details"})

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        for key in data:
            if key not in cls._LOADABLE_FIELDS:
                logger.warning(f"Snapshot {data.get('land_record_id')}: ignoring unknown field '{key}'")
        return cls(
            land_record_id=str(data.get("land_record_id") or ""),
            nondhs=[Nondh.from_dict(n) for n in (data.get("nondhs") or [])],
            details=[NondhDetail.from_dict(d) for d in (data.get("details") or [])],
            revision=int(data.get("revision") or 0),
        )


# ═══════════════════════════════════════════════════
# SNAPSHOT HELPERS
# ═══════════════════════════════════════════════════

def index_details(order: list[Nondh], details: list[NondhDetail]) -> dict[str, NondhDetail]:
    """Map nondh id -> detail, enforcing exactly one detail per nondh.

    Raises:
        MalformedSnapshotError: a detail points at a nondh missing from
            ``order``, a nondh has two details, or a nondh has none.
    """
    known = {n.id for n in order}
    by_nondh: dict[str, NondhDetail] = {}
    for d in details:
        if d.nondh_id not in known:
            raise MalformedSnapshotError(
                f"Detail {d.id} references nondh {d.nondh_id} which is not in the order"
            )
        if d.nondh_id in by_nondh:
            raise MalformedSnapshotError(f"Nondh {d.nondh_id} has more than one detail")
        by_nondh[d.nondh_id] = d
    missing = [n.id for n in order if n.id not in by_nondh]
    if missing:
        raise MalformedSnapshotError(f"Nondh(s) without a detail: {', '.join(missing)}")
    return by_nondh


def changed_detail_ids(before: list[NondhDetail], after: list[NondhDetail]) -> list[str]:
    """Field-level diff of two detail lists; returns ids that differ.

    Details present on only one side count as changed.
    """
    old = {d.id: d for d in before}
    changed: list[str] = []
    seen: set[str] = set()
    for d in after:
        seen.add(d.id)
        prev = old.get(d.id)
        if prev is None or prev != d:
            changed.append(d.id)
    changed.extend(i for i in old if i not in seen)
    return changed
