"""Tests for backend/lrms/engine/checks.py — snapshot data-entry checks."""

import pytest
from dataclasses import replace

from lrms.engine.checks import (
    check_entry_completeness,
    check_adjudications,
    check_date_order,
    check_transfer_areas,
    check_validity_cache,
    run_snapshot_checks,
)
from lrms.engine.errors import MalformedSnapshotError
from lrms.engine.models import Adjudication, AffectedEntry, NondhDetail, index_details
from lrms.engine.ordering import canonical_order
from lrms.engine.validity import resolve


# ═══════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════

def _codes(checks: list[dict]) -> list[str]:
    """Extract rule_code list from check results for easy assertion."""
    return [c["rule_code"] for c in checks]


def _find(checks: list[dict], code: str) -> dict | None:
    for c in checks:
        if c["rule_code"] == code:
            return c
    return None


def _run(fn, nondhs, details):
    order = canonical_order(nondhs)
    return fn(order, index_details(order, details))


def _swap(details, detail_id, **changes):
    return [replace(d, **changes) if d.id == detail_id else d for d in details]


# ═══════════════════════════════════════════════════
# 1. Entry completeness
# ═══════════════════════════════════════════════════

class TestEntryCompleteness:

    def test_clean_chain_passes(self, succession_chain):
        nondhs, details = succession_chain
        details = _swap(details, "d4", owner_relations=details[0].owner_relations)
        assert _run(check_entry_completeness, nondhs, details) == []

    def test_missing_date(self, succession_chain):
        nondhs, details = succession_chain
        checks = _run(check_entry_completeness, nondhs, _swap(details, "d1", date=""))
        c = _find(checks, "NONDH_DATE_REQUIRED")
        assert c["nondh_id"] == "n1"
        assert c["status"] == "FAIL"

    def test_missing_owner(self, succession_chain):
        """Slot #4 has no owners yet."""
        nondhs, details = succession_chain
        checks = _run(check_entry_completeness, nondhs, details)
        assert _codes(checks) == ["NONDH_OWNER_REQUIRED"]
        assert _find(checks, "NONDH_OWNER_REQUIRED")["nondh_id"] == "n4"

    def test_first_right_hukam_needs_no_owner(self, succession_chain):
        nondhs, details = succession_chain
        hukam = Adjudication(authority="ALT Krushipanch", adjudication_date="2004-01-01", right_class="first")
        details = _swap(details, "d4", amendment_kind="Adjudication", adjudication=hukam)
        assert "NONDH_OWNER_REQUIRED" not in _codes(_run(check_entry_completeness, nondhs, details))

    def test_radd_without_reason(self, succession_chain):
        nondhs, details = succession_chain
        checks = _run(check_entry_completeness, nondhs, _swap(details, "d1", status="invalid"))
        assert "NONDH_REASON_REQUIRED" in _codes(checks)

    def test_transfer_without_old_owner(self, succession_chain):
        nondhs, details = succession_chain
        checks = _run(check_entry_completeness, nondhs, _swap(details, "d3", old_owner_name=None))
        c = _find(checks, "NONDH_OLD_OWNER_REQUIRED")
        assert c["severity"] == "HIGH"
        assert c["nondh_id"] == "n3"


# ═══════════════════════════════════════════════════
# 2. Hukam fields
# ═══════════════════════════════════════════════════

class TestAdjudicationChecks:

    def test_hukam_date_and_entries(self, hukam_chain):
        nondhs, details = hukam_chain
        hukam = replace(details[3].adjudication, adjudication_date="", affected_entries=[
            AffectedEntry(id="a1", referenced_nondh_number="2", status="invalid"),
            AffectedEntry(id="a2", referenced_nondh_number="40"),
        ])
        checks = _run(check_adjudications, nondhs, _swap(details, "d4", adjudication=hukam))
        assert sorted(_codes(checks)) == [
            "ADJUDICATION_DATE_REQUIRED", "AFFECTED_REASON_REQUIRED", "AFFECTED_UNKNOWN_REFERENCE",
        ]

    def test_clean_hukam(self, hukam_chain):
        nondhs, details = hukam_chain
        assert _run(check_adjudications, nondhs, details) == []


# ═══════════════════════════════════════════════════
# 3. Date order
# ═══════════════════════════════════════════════════

class TestDateOrderCheck:

    def test_out_of_order_date(self, succession_chain):
        nondhs, details = succession_chain
        checks = _run(check_date_order, nondhs, _swap(details, "d2", date="1999-01-01"))
        flagged = [c["nondh_id"] for c in checks]
        assert "n2" in flagged
        assert all(c["status"] == "WARNING" for c in checks)

    def test_increasing_dates_pass(self, succession_chain):
        nondhs, details = succession_chain
        assert _run(check_date_order, nondhs, details) == []


# ═══════════════════════════════════════════════════
# 4. Area conservation
# ═══════════════════════════════════════════════════

class TestTransferAreas:

    def test_residue_is_info(self, succession_chain):
        nondhs, details = succession_chain
        checks = _run(check_transfer_areas, nondhs, details)
        assert _codes(checks) == ["TRANSFER_UNBALANCED"]
        c = checks[0]
        assert (c["nondh_id"], c["status"], c["severity"]) == ("n2", "INFO", "LOW")

    def test_over_cap_is_critical(self, succession_chain):
        nondhs, details = succession_chain
        checks = _run(check_transfer_areas, nondhs, _swap(details, "d3", old_owner_area=400.0))
        c = _find(checks, "AREA_EXCEEDED")
        assert c["severity"] == "CRITICAL"
        assert c["nondh_id"] == "n3"


# ═══════════════════════════════════════════════════
# 5. Cached validity + runner
# ═══════════════════════════════════════════════════

class TestValidityCache:

    def test_stale_flags(self, radd_chain):
        nondhs, details = radd_chain
        checks = _run(check_validity_cache, nondhs, details)
        assert [c["nondh_id"] for c in checks] == ["n1"]

    def test_resolved_snapshot_is_clean(self, radd_chain):
        nondhs, details = radd_chain
        order = canonical_order(nondhs)
        assert _run(check_validity_cache, nondhs, resolve(order, details)) == []


class TestRunSnapshotChecks:

    def test_collects_all_rules(self, radd_chain):
        nondhs, details = radd_chain
        details = _swap(details, "d2", invalid_reason=None)
        checks = run_snapshot_checks(canonical_order(nondhs), details)
        codes = _codes(checks)
        assert "NONDH_REASON_REQUIRED" in codes
        assert "VALIDITY_STALE" in codes
        assert all(c["source"] == "deterministic" for c in checks)

    def test_malformed_snapshot_raises(self, radd_chain):
        nondhs, details = radd_chain
        with pytest.raises(MalformedSnapshotError):
            run_snapshot_checks(canonical_order(nondhs), details + [NondhDetail(id="x", nondh_id="ghost")])
