"""Tests for backend/lrms/engine/ordering.py — canonical nondh order + date order."""

import random
import pytest

from lrms.engine.errors import MalformedSnapshotError, NotFoundError
from lrms.engine.models import Nondh, NondhDetail, SurveyRef
from lrms.engine.ordering import (
    canonical_order,
    canonical_index,
    find_by_number,
    primary_ref_kind,
    date_bounds,
    is_valid_date_order,
)


# ═══════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════

def _nondh(nid: str, number: str, *kinds: str) -> Nondh:
    refs = [SurveyRef(number=f"{nid}-{k}", kind=k) for k in kinds]
    return Nondh(id=nid, number=number, affected_survey_refs=refs)


def _numbers(order: list[Nondh]) -> list[str]:
    return [n.number for n in order]


# ═══════════════════════════════════════════════════
# 1. Primary reference kind
# ═══════════════════════════════════════════════════

class TestPrimaryRefKind:

    def test_survey_beats_block(self):
        """Priority, not majority: one survey ref outranks two block refs."""
        assert primary_ref_kind(_nondh("a", "1", "block", "block", "survey")) == "survey"

    def test_block_beats_resurvey(self):
        assert primary_ref_kind(_nondh("a", "1", "resurvey", "block")) == "block"

    def test_no_refs_defaults_to_survey(self):
        assert primary_ref_kind(_nondh("a", "1")) == "survey"


# ═══════════════════════════════════════════════════
# 2. Canonical order
# ═══════════════════════════════════════════════════

class TestCanonicalOrder:

    def test_kind_before_number(self):
        nondhs = [
            _nondh("a", "1", "resurvey"),
            _nondh("b", "5", "survey"),
            _nondh("c", "2", "block"),
            _nondh("d", "3", "survey"),
        ]
        assert _numbers(canonical_order(nondhs)) == ["3", "5", "2", "1"]

    def test_numeric_not_lexical(self):
        nondhs = [_nondh("a", "10"), _nondh("b", "9"), _nondh("c", "100")]
        assert _numbers(canonical_order(nondhs)) == ["9", "10", "100"]

    def test_leading_integer_of_compound_numbers(self):
        nondhs = [_nondh("a", "10-35"), _nondh("b", "9"), _nondh("c", "11")]
        assert _numbers(canonical_order(nondhs)) == ["9", "10-35", "11"]

    def test_segment_tie_break(self):
        """Same leading integer: remaining segments compare numerically."""
        nondhs = [_nondh("a", "10-35-40"), _nondh("b", "10-5"), _nondh("c", "10"),
                  _nondh("d", "10/35")]
        assert _numbers(canonical_order(nondhs)) == ["10", "10-5", "10/35", "10-35-40"]

    def test_identical_numbers_fall_back_to_id(self):
        nondhs = [_nondh("z", "4"), _nondh("a", "4")]
        assert [n.id for n in canonical_order(nondhs)] == ["a", "z"]

    def test_shuffle_invariant(self):
        """Re-running on shuffled copies yields the identical sequence."""
        rng = random.Random(42)
        kinds = ["survey", "block", "resurvey"]
        nondhs = []
        for i in range(60):
            number = str(rng.randint(1, 20))
            if rng.random() < 0.4:
                number += f"-{rng.randint(1, 9)}"
            nondhs.append(_nondh(f"id{i:02d}", number, rng.choice(kinds)))
        expected = [n.id for n in canonical_order(nondhs)]
        for _ in range(20):
            copy = list(nondhs)
            rng.shuffle(copy)
            assert [n.id for n in canonical_order(copy)] == expected

    def test_total_order_has_no_ties(self):
        nondhs = [_nondh(f"id{i}", "7") for i in range(5)]
        order = canonical_order(nondhs)
        assert len({n.id for n in order}) == 5

    def test_duplicate_ids_rejected(self):
        with pytest.raises(MalformedSnapshotError):
            canonical_order([_nondh("a", "1"), _nondh("a", "2")])

    def test_input_not_mutated(self):
        nondhs = [_nondh("b", "2"), _nondh("a", "1")]
        canonical_order(nondhs)
        assert _numbers(nondhs) == ["2", "1"]


class TestLookups:

    def test_canonical_index(self):
        order = canonical_order([_nondh("a", "2"), _nondh("b", "1")])
        assert canonical_index(order, "a") == 1

    def test_canonical_index_unknown(self):
        with pytest.raises(NotFoundError):
            canonical_index([], "missing")

    def test_find_by_number_trims(self):
        order = canonical_order([_nondh("a", "2"), _nondh("b", "10-35")])
        assert find_by_number(order, " 10-35 ").id == "b"
        assert find_by_number(order, "99") is None


# ═══════════════════════════════════════════════════
# 3. Date order
# ═══════════════════════════════════════════════════

class TestDateOrder:

    def _chain(self):
        nondhs = [_nondh(f"n{i}", str(i)) for i in (1, 2, 3)]
        details = [
            NondhDetail(id="d1", nondh_id="n1", date="2001-05-01"),
            NondhDetail(id="d2", nondh_id="n2", date="2005-05-01"),
            NondhDetail(id="d3", nondh_id="n3", date="2010-05-01"),
        ]
        return canonical_order(nondhs), details

    def test_bounds(self):
        order, details = self._chain()
        assert date_bounds(order, details, "n2") == ("2001-05-01", "2010-05-01")
        assert date_bounds(order, details, "n1") == ("", "2005-05-01")
        assert date_bounds(order, details, "n3") == ("2005-05-01", "")

    def test_strictly_between(self):
        order, details = self._chain()
        assert is_valid_date_order(order, details, "n2", "2003-01-01")
        assert is_valid_date_order(order, details, "n2", "01/01/2003")
        assert not is_valid_date_order(order, details, "n2", "2001-05-01")
        assert not is_valid_date_order(order, details, "n2", "2010-05-01")
        assert not is_valid_date_order(order, details, "n2", "2012-01-01")

    def test_open_ends(self):
        order, details = self._chain()
        assert is_valid_date_order(order, details, "n1", "1990-01-01")
        assert is_valid_date_order(order, details, "n3", "2030-01-01")

    def test_unparseable_date_rejected(self):
        order, details = self._chain()
        assert not is_valid_date_order(order, details, "n2", "sometime")

    def test_empty_date_allowed(self):
        order, details = self._chain()
        assert is_valid_date_order(order, details, "n2", "")
