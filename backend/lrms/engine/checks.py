"""Snapshot checks — deterministic data-entry rules over a land record.

Each check returns a list of standardized check dicts (see
``_make_check``); ``run_snapshot_checks`` runs them all over one snapshot.
Nothing here edits the snapshot.

Rules:
  1. Entry completeness (kind, date, owners, Radd reason, old owner)
  2. Hukam fields (date, affected-entry reasons and references)
  3. Date order against canonical neighbours
  4. Area conservation per transfer (over the cap / not balanced)
  5. Cached validity agrees with the chain
"""

import logging

from lrms.config import (
    STATUS_INVALID,
    TRACE_ENABLED,
    AREA_EPSILON_SQM,
    AREA_ROUNDTRIP_TOLERANCE_SQM,
)
from lrms.engine.area import format_area
from lrms.engine.models import Nondh, NondhDetail, RIGHT_FIRST, index_details
from lrms.engine.ordering import find_by_number, is_valid_date_order, date_bounds
from lrms.engine.succession import transfer_views
from lrms.engine.utils import trace
from lrms.engine.validity import derived_validity

logger = logging.getLogger(__name__)

# Kinds whose entry form requires an old owner
_OLD_OWNER_KINDS = {"DistributionRight", "Inheritance", "GiftTransfer", "SaleTransfer", "LifeRightTransfer"}


def _make_check(rule_code: str, rule_name: str, severity: str, status: str,
                explanation: str, recommendation: str, evidence: str,
                nondh_id: str | None = None) -> dict:
    """Create a standardized check result dict."""
    return {
        "rule_code": rule_code,
        "rule_name": rule_name,
        "severity": severity,
        "status": status,
        "explanation": explanation,
        "recommendation": recommendation,
        "evidence": evidence,
        "nondh_id": nondh_id,
        "source": "deterministic",
    }


# ═══════════════════════════════════════════════════
# 1. ENTRY COMPLETENESS
# ═══════════════════════════════════════════════════

def check_entry_completeness(order: list[Nondh], by_nondh: dict[str, NondhDetail]) -> list[dict]:
    checks = []
    for nondh in order:
        d = by_nondh[nondh.id]
        label = f"Nondh {nondh.number}"

        if not d.amendment_kind:
            checks.append(_make_check(
                "NONDH_KIND_REQUIRED", "Nondh Type Missing", "HIGH", "FAIL",
                f"{label} has no nondh type.",
                "Select the nondh type (Varsai, Vechand, Hukam, ...).",
                label, nondh.id,
            ))
        if not d.date:
            checks.append(_make_check(
                "NONDH_DATE_REQUIRED", "Nondh Date Missing", "MEDIUM", "FAIL",
                f"{label} has no date.",
                "Enter the nondh date from the 7/12 extract.",
                label, nondh.id,
            ))

        first_right_hukam = d.is_adjudication and d.right_class == RIGHT_FIRST
        if not first_right_hukam and not any(r.owner_name.strip() for r in d.owner_relations):
            checks.append(_make_check(
                "NONDH_OWNER_REQUIRED", "Owner Name Missing", "HIGH", "FAIL",
                f"{label} ({d.amendment_kind}) has no named owner.",
                "Add at least one owner with a name.",
                label, nondh.id,
            ))
        if d.status == STATUS_INVALID and not (d.invalid_reason or "").strip():
            checks.append(_make_check(
                "NONDH_REASON_REQUIRED", "Radd Reason Missing", "HIGH", "FAIL",
                f"{label} is marked Radd but carries no reason.",
                "Record why the nondh was cancelled.",
                label, nondh.id,
            ))
        if d.amendment_kind in _OLD_OWNER_KINDS and not (d.old_owner_name or "").strip():
            checks.append(_make_check(
                "NONDH_OLD_OWNER_REQUIRED", "Old Owner Missing", "HIGH", "FAIL",
                f"{label} is a transfer ({d.amendment_kind}) without an old owner.",
                "Select the old owner from the owners of earlier nondhs.",
                label, nondh.id,
            ))
    return checks


# ═══════════════════════════════════════════════════
# 2. HUKAM FIELDS
# ═══════════════════════════════════════════════════

def check_adjudications(order: list[Nondh], by_nondh: dict[str, NondhDetail]) -> list[dict]:
    checks = []
    for nondh in order:
        d = by_nondh[nondh.id]
        if not d.is_adjudication or d.adjudication is None:
            continue
        label = f"Nondh {nondh.number} (Hukam)"
        if not d.adjudication.adjudication_date:
            checks.append(_make_check(
                "ADJUDICATION_DATE_REQUIRED", "Hukam Date Missing", "MEDIUM", "FAIL",
                f"{label} has no hukam date.",
                "Enter the date of the order.",
                label, nondh.id,
            ))
        for entry in d.adjudication.affected_entries:
            ref = entry.referenced_nondh_number
            if entry.status == STATUS_INVALID and not (entry.invalid_reason or "").strip():
                checks.append(_make_check(
                    "AFFECTED_REASON_REQUIRED", "Affected Nondh Reason Missing", "HIGH", "FAIL",
                    f"{label} marks nondh {ref} Radd without a reason.",
                    "Record the reason for the affected nondh.",
                    f"{label} -> {ref}", nondh.id,
                ))
            if ref and find_by_number(order, ref) is None:
                checks.append(_make_check(
                    "AFFECTED_UNKNOWN_REFERENCE", "Affected Nondh Not Found", "HIGH", "FAIL",
                    f"{label} references nondh {ref}, which is not in this land record.",
                    "Correct the referenced nondh number or add the missing nondh.",
                    f"{label} -> {ref}", nondh.id,
                ))
    return checks


# ═══════════════════════════════════════════════════
# 3. DATE ORDER
# ═══════════════════════════════════════════════════

def check_date_order(order: list[Nondh], by_nondh: dict[str, NondhDetail]) -> list[dict]:
    checks = []
    details = list(by_nondh.values())
    for nondh in order:
        d = by_nondh[nondh.id]
        if not d.date:
            continue
        if not is_valid_date_order(order, details, nondh.id, d.date):
            lo, hi = date_bounds(order, details, nondh.id)
            checks.append(_make_check(
                "NONDH_DATE_ORDER", "Nondh Date Out of Order", "MEDIUM", "WARNING",
                f"Nondh {nondh.number} is dated {d.date}, outside its neighbours "
                f"({lo or '-'} .. {hi or '-'}). Nondh dates should increase with the nondh order.",
                "Check the date against the mutation register.",
                f"Nondh {nondh.number}: {d.date}", nondh.id,
            ))
    return checks


# ═══════════════════════════════════════════════════
# 4. AREA CONSERVATION
# ═══════════════════════════════════════════════════

def check_transfer_areas(order: list[Nondh], by_nondh: dict[str, NondhDetail]) -> list[dict]:
    checks = []
    for nondh in order:
        d = by_nondh[nondh.id]
        for view in transfer_views(d):
            if not view.old_owner_name.strip():
                continue
            assigned = sum(view.per_owner_area.get(i, 0.0) for i in view.new_owner_ids)
            evidence = (f"Nondh {nondh.number}: {view.old_owner_name} "
                        f"{format_area(view.old_owner_area)} -> {format_area(assigned)}")
            trace(logger, f"AREA {evidence}")
            if assigned > view.old_owner_area + AREA_EPSILON_SQM:
                checks.append(_make_check(
                    "AREA_EXCEEDED", "New Owners Exceed Old Owner Area", "CRITICAL", "FAIL",
                    f"New owners of {view.old_owner_name} hold more area than the old owner had.",
                    "Reduce the new-owner areas so they fit within the old owner's holding.",
                    evidence, nondh.id,
                ))
            elif view.new_owner_ids and view.old_owner_area - assigned > AREA_ROUNDTRIP_TOLERANCE_SQM:
                checks.append(_make_check(
                    "TRANSFER_UNBALANCED", "Transfer Leaves Residue", "LOW", "INFO",
                    f"{format_area(view.old_owner_area - assigned)} stays with "
                    f"{view.old_owner_name} after this transfer.",
                    "Confirm the residue is intended.",
                    evidence, nondh.id,
                ))
    return checks


# ═══════════════════════════════════════════════════
# 5. CACHED VALIDITY
# ═══════════════════════════════════════════════════

def check_validity_cache(order: list[Nondh], by_nondh: dict[str, NondhDetail]) -> list[dict]:
    checks = []
    validity = derived_validity(order, list(by_nondh.values()))
    for nondh in order:
        d = by_nondh[nondh.id]
        stale = [r for r in d.owner_relations if r.is_valid != validity[nondh.id]]
        if stale:
            checks.append(_make_check(
                "VALIDITY_STALE", "Owner Validity Out of Date", "MEDIUM", "WARNING",
                f"{len(stale)} owner(s) on nondh {nondh.number} disagree with the validity chain "
                f"(expected {'valid' if validity[nondh.id] else 'invalid'}).",
                "Resolve the land record to refresh owner validity.",
                f"Nondh {nondh.number}", nondh.id,
            ))
    return checks


# ═══════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═══════════════════════════════════════════════════

def run_snapshot_checks(order: list[Nondh], details: list[NondhDetail]) -> list[dict]:
    """Run all snapshot checks and return a flat list of check results.

    Raises:
        MalformedSnapshotError: details do not match ``order`` one to one.
    """
    by_nondh = index_details(order, details)
    all_checks = []

    check_functions = [
        ("Entry: Completeness", check_entry_completeness),
        ("Entry: Hukam fields", check_adjudications),
        ("Order: Dates", check_date_order),
        ("Area: Transfers", check_transfer_areas),
        ("Chain: Cached validity", check_validity_cache),
    ]

    for label, fn in check_functions:
        try:
            results = fn(order, by_nondh)
            if results:
                logger.info(f"Checks [{label}]: {len(results)} check(s) generated")
            all_checks.extend(results)
        except Exception as e:
            logger.error(f"Checks [{label}] failed: {e}")

    logger.info(f"Snapshot checks: {len(all_checks)} total checks generated")
    if TRACE_ENABLED:
        for c in all_checks:
            trace(logger, f"RESULT {c['rule_code']} status={c['status']} nondh={c['nondh_id']}")
    return all_checks
