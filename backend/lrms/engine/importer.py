"""Bulk land-record import from the legacy JSON upload.

Upload shape (camelCase, as produced by the data-entry tool)::

    {
      "nondhs": [{"number": "1", "affectedSNos": [{"number": "123", "type": "block_no"}]}],
      "nondhDetails": [{
          "nondhNumber": "1", "type": "Kabjedaar", "date": "15012015",
          "status": "Pramaanik", "invalidReason": "...",
          "oldOwner": "Owner 1", "oldOwnerArea": {"sqm": 1000},
          "owners": [{"name": "...", "area": {"acre": 3, "guntha": 0},
                      "surveyNumber": "126", "surveyNumberType": "block_no"}],
          "newOwners": [...],
          "hukamDate": "05032019", "hukamType": "SSRD", "ganotType": "1st Right",
          "affectedNondhDetails": [{"nondhNo": "1", "status": "Radd", "invalidReason": "..."}]
      }]
    }

Bad detail rows are skipped with a message instead of failing the whole
upload; so are transfers whose new owners would hold more than the old
owner, which never reach the snapshot.  The snapshot that comes out
always has exactly one detail per nondh and has been run through the
validity chain.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from lrms.config import (
    STATUS_VALID,
    STATUS_INVALID,
    STATUS_NULLIFIED,
    IMPORT_DEFAULT_INVALID_REASON,
    IMPORT_DEFAULT_TENURE,
    AREA_EPSILON_SQM,
)
from lrms.engine.area import parse_area, format_area
from lrms.engine.models import (
    Adjudication,
    AffectedEntry,
    Nondh,
    NondhDetail,
    OwnerRelation,
    Snapshot,
    SurveyRef,
    TransferSpec,
    AMENDMENT_KINDS,
    RIGHT_FIRST,
    RIGHT_SECOND,
)
from lrms.engine.ordering import canonical_order
from lrms.engine.succession import previous_owners, transfer_views
from lrms.engine.utils import (
    derived_id,
    new_id,
    legacy_date_to_iso,
    normalize_name,
    normalize_nondh_number,
)
from lrms.engine.validity import resolve

logger = logging.getLogger(__name__)

# Legacy nondh type labels -> amendment kinds
LEGACY_KIND_MAP = {
    "Kabjedaar": "Possessor",
    "Ekatrikaran": "Consolidation",
    "Varsai": "Inheritance",
    "Hayati_ma_hakh_dakhal": "LifeRightTransfer",
    "Hakkami": "GiftTransfer",
    "Vechand": "SaleTransfer",
    "Durasti": "Correction",
    "Promulgation": "Promulgation",
    "Hukam": "Adjudication",
    "Vehchani": "DistributionRight",
    "Bojo": "Encumbrance",
    "Other": "Other",
}

LEGACY_STATUS_MAP = {
    "Pramaanik": STATUS_VALID,
    "Radd": STATUS_INVALID,
    "Na Manjoor": STATUS_NULLIFIED,
}

LEGACY_SURVEY_KIND_MAP = {
    "s_no": "survey",
    "block_no": "block",
    "re_survey_no": "resurvey",
}

LEGACY_RIGHT_MAP = {
    "1st Right": RIGHT_FIRST,
    "2nd Right": RIGHT_SECOND,
}

# Only this authority issues ganot (1st / 2nd Right) orders
GANOT_AUTHORITY = "ALT Krushipanch"
DEFAULT_AUTHORITY = "SSRD"


@dataclass
class ImportResult:
    snapshot: Snapshot
    skipped: list[str] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "snapshot": self.snapshot.to_dict(),
            "skipped": list(self.skipped),
            "stats": dict(self.stats),
        }


# ═══════════════════════════════════════════════════
# 1. FIELD MAPPING
# ═══════════════════════════════════════════════════

def map_status(value: Any) -> str:
    """Legacy or engine status label -> engine status.  Unknown -> valid."""
    if value in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[value]
    if value in (STATUS_VALID, STATUS_INVALID, STATUS_NULLIFIED):
        return value
    return STATUS_VALID


def map_kind(value: Any) -> str | None:
    """Legacy or engine kind label -> engine kind; None when unknown."""
    if value in LEGACY_KIND_MAP:
        return LEGACY_KIND_MAP[value]
    if value in AMENDMENT_KINDS:
        return value
    return None


def map_survey_kind(value: Any) -> str:
    if value in LEGACY_SURVEY_KIND_MAP:
        return LEGACY_SURVEY_KIND_MAP[value]
    if value in LEGACY_SURVEY_KIND_MAP.values():
        return value
    return "survey"


def parse_survey_ref(item: Any) -> SurveyRef | None:
    """One ``affectedSNos`` item: an object, or the same object JSON-encoded.

    A plain string that is not JSON is taken as a survey number.
    """
    if item is None or item == "":
        return None
    if isinstance(item, str):
        try:
            item = json.loads(item)
        except json.JSONDecodeError:
            return SurveyRef(number=item.strip())
        if not isinstance(item, dict):
            return SurveyRef(number=str(item).strip())
    if not isinstance(item, dict):
        return None
    number = str(item.get("number") or "").strip()
    if not number:
        return None
    return SurveyRef(number=number, kind=map_survey_kind(item.get("type") or item.get("kind")))


def _owner_relations(detail_id: str, rows: list[dict], start: int = 0) -> list[OwnerRelation]:
    relations = []
    for i, row in enumerate(rows or [], start=start):
        survey_ref = None
        if row.get("surveyNumber"):
            survey_ref = SurveyRef(
                number=str(row["surveyNumber"]).strip(),
                kind=map_survey_kind(row.get("surveyNumberType")),
            )
        relations.append(OwnerRelation(
            id=derived_id(detail_id, "owner", i),
            owner_name=str(row.get("name") or "").strip(),
            area=parse_area(row.get("area")),
            survey_ref=survey_ref,
            tenure=row.get("tenure") or IMPORT_DEFAULT_TENURE,
        ))
    return relations


def _affected_entries(detail_id: str, rows: list[dict]) -> list[AffectedEntry]:
    entries = []
    for i, row in enumerate(rows or []):
        status = map_status(row.get("status"))
        reason = None
        if status == STATUS_INVALID:
            reason = (row.get("invalidReason") or "").strip() or IMPORT_DEFAULT_INVALID_REASON
        entries.append(AffectedEntry(
            id=derived_id(detail_id, "affected", i),
            referenced_nondh_number=normalize_nondh_number(row.get("nondhNo")),
            status=status,
            invalid_reason=reason,
        ))
    return entries


# ═══════════════════════════════════════════════════
# 2. ROW PARSING
# ═══════════════════════════════════════════════════

def _parse_nondhs(land_record_id: str, rows: list[dict], skipped: list[str]) -> list[Nondh]:
    nondhs = []
    for i, row in enumerate(rows or []):
        number = normalize_nondh_number(row.get("number"))
        if not number:
            skipped.append(f"Nondh row {i + 1}: missing number")
            continue
        refs = [parse_survey_ref(r) for r in (row.get("affectedSNos") or row.get("affected_s_nos") or [])]
        nondhs.append(Nondh(
            id=derived_id(land_record_id, "nondh", i, number),
            number=number,
            affected_survey_refs=[r for r in refs if r is not None],
            document_ref=row.get("documentRef"),
        ))
    return nondhs


def _parse_detail(nondh: Nondh, row: dict, kind: str) -> tuple[NondhDetail, str | None]:
    """Build one detail.  Returns it with the raw ``oldOwnerArea`` (or None)."""
    detail_id = derived_id(nondh.id, "detail")
    status = map_status(row.get("status"))
    invalid_reason = None
    if status == STATUS_INVALID:
        invalid_reason = (row.get("invalidReason") or "").strip() or IMPORT_DEFAULT_INVALID_REASON

    owners = _owner_relations(detail_id, row.get("owners") or [])
    new_owners = _owner_relations(detail_id, row.get("newOwners") or [], start=len(owners))
    old_owner = str(row.get("oldOwner") or "").strip() or None
    raw_old_area = row.get("oldOwnerArea")
    old_area = parse_area(raw_old_area) if raw_old_area is not None else None

    adjudication = None
    if kind == "Adjudication":
        authority = row.get("hukamType") or DEFAULT_AUTHORITY
        right_class = ""
        if authority == GANOT_AUTHORITY:
            right_class = LEGACY_RIGHT_MAP.get(row.get("ganotType"), "")
        transfers = []
        if right_class == RIGHT_FIRST and old_owner:
            transfers.append(TransferSpec(
                id=derived_id(detail_id, "transfer", 0),
                old_owner_name=old_owner,
                old_owner_area=old_area or 0.0,
                new_owner_ids=[r.id for r in new_owners],
                per_owner_area={r.id: r.area for r in new_owners},
            ))
        adjudication = Adjudication(
            authority=authority,
            adjudication_date=legacy_date_to_iso(row.get("hukamDate") or ""),
            right_class=right_class,
            affected_entries=_affected_entries(detail_id, row.get("affectedNondhDetails") or []),
            transfers=transfers,
        )

    detail = NondhDetail(
        id=detail_id,
        nondh_id=nondh.id,
        amendment_kind=kind,
        status=status,
        invalid_reason=invalid_reason,
        date=legacy_date_to_iso(row.get("date") or ""),
        old_owner_name=old_owner if kind != "Adjudication" else None,
        old_owner_area=old_area if kind != "Adjudication" else None,
        equal_distribution=bool(row.get("equalDistribution", False)),
        owner_relations=owners + new_owners,
        adjudication=adjudication,
    )
    return detail, raw_old_area


def _assigned(view: TransferSpec) -> float:
    return sum(view.per_owner_area.get(oid, 0.0) for oid in view.new_owner_ids)


def _settle_transfers(order: list[Nondh], details: list[NondhDetail], missing: set[str],
                      skipped: list[str]) -> tuple[list[NondhDetail], int]:
    """Fill in missing old owner areas, then refuse splits over the cap.

    Old owner area, when the upload leaves it out: the old owner's holding
    in the pool at that nondh, else what the new owners received.  A detail
    whose new owners hold more than its old owner is replaced by an empty
    slot and reported in ``skipped``.  Returns the details and the number
    of rows refused.
    """
    current = list(details)
    refused = 0
    for nondh in order:
        i = next(k for k, d in enumerate(current) if d.nondh_id == nondh.id)
        d = current[i]
        if d.id in missing:
            pool = {normalize_name(o.owner_name): o.area
                    for o in previous_owners(order, current, None, nondh.id)}
            if d.is_transfer and d.old_owner_name:
                area = pool.get(normalize_name(d.old_owner_name), sum(r.area for r in d.owner_relations))
                d = replace(d, old_owner_area=area)
            elif d.is_adjudication and d.adjudication.transfers:
                transfers = []
                for t in d.adjudication.transfers:
                    fallback = sum(t.per_owner_area.values())
                    transfers.append(replace(t, old_owner_area=pool.get(normalize_name(t.old_owner_name), fallback)))
                d = replace(d, adjudication=replace(d.adjudication, transfers=transfers))

        over = next((v for v in transfer_views(d)
                     if v.old_owner_name.strip() and _assigned(v) > v.old_owner_area + AREA_EPSILON_SQM),
                    None)
        if over is not None:
            skipped.append(
                f"Nondh {nondh.number}: new owners hold {format_area(_assigned(over))}, more than "
                f"{over.old_owner_name}'s {format_area(over.old_owner_area)}"
            )
            d = NondhDetail(id=d.id, nondh_id=nondh.id)
            refused += 1
        current[i] = d
    return current, refused


# ═══════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═══════════════════════════════════════════════════

def import_land_record(payload: dict, land_record_id: str | None = None) -> ImportResult:
    """Turn a legacy upload payload into a resolved :class:`Snapshot`."""
    if not isinstance(payload, dict):
        raise ValueError("Upload payload must be a JSON object")
    land_record_id = land_record_id or str(payload.get("landRecordId") or "") or new_id()
    skipped: list[str] = []

    nondhs = _parse_nondhs(land_record_id, payload.get("nondhs") or [], skipped)
    by_number: dict[str, Nondh] = {}
    for n in nondhs:
        by_number.setdefault(n.number, n)

    details: dict[str, NondhDetail] = {}
    missing_old_area: set[str] = set()
    for row in payload.get("nondhDetails") or []:
        number = normalize_nondh_number(row.get("nondhNumber"))
        if not number:
            skipped.append("Nondh unknown: missing nondhNumber")
            continue
        nondh = by_number.get(number)
        if nondh is None:
            skipped.append(f"Nondh {number}: No matching nondh found in nondhs array")
            continue
        kind = map_kind(row.get("type"))
        if kind is None:
            skipped.append(f"Nondh {number}: Invalid nondh type '{row.get('type')}'")
            continue
        if nondh.id in details:
            skipped.append(f"Nondh {number}: duplicate detail ignored")
            continue
        detail, raw_old_area = _parse_detail(nondh, row, kind)
        if raw_old_area is None:
            missing_old_area.add(detail.id)
        details[nondh.id] = detail

    parsed = len(details)
    # every nondh needs a detail
    for n in nondhs:
        if n.id not in details:
            details[n.id] = NondhDetail(id=derived_id(n.id, "detail"), nondh_id=n.id)

    ordered_details = [details[n.id] for n in nondhs]
    order = canonical_order(nondhs)
    ordered_details, refused = _settle_transfers(order, ordered_details, missing_old_area, skipped)
    imported = parsed - refused
    ordered_details = resolve(order, ordered_details)

    for msg in skipped:
        logger.warning(f"Import [{land_record_id}] skipped: {msg}")

    stats = {
        "nondhs": len(nondhs),
        "nondh_details": imported,
        "total_owners": sum(len(d.owner_relations) for d in ordered_details),
        "skipped": len(skipped),
    }
    logger.info(f"Import [{land_record_id}]: {stats['nondhs']} nondh(s), "
                f"{stats['total_owners']} owner(s), {stats['skipped']} skipped")
    snapshot = Snapshot(land_record_id=land_record_id, nondhs=nondhs, details=ordered_details)
    return ImportResult(snapshot=snapshot, skipped=skipped, stats=stats)
