"""Tests for backend/lrms/engine/validity.py — the Radd parity chain."""

import random
import pytest
from dataclasses import replace

from lrms.engine.errors import MalformedSnapshotError
from lrms.engine.models import Nondh, NondhDetail, OwnerRelation
from lrms.engine.ordering import canonical_order
from lrms.engine.validity import resolve, resolve_from, derived_validity


# ═══════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════

def _validity(details: list[NondhDetail]) -> dict[str, bool]:
    """nondh id -> the (single) cached is_valid value of its relations."""
    out = {}
    for d in details:
        flags = {r.is_valid for r in d.owner_relations}
        assert len(flags) == 1, f"relations of {d.id} disagree"
        out[d.nondh_id] = flags.pop()
    return out


def _random_chain(rng: random.Random, size: int):
    nondhs = [Nondh(id=f"n{i}", number=str(i + 1)) for i in range(size)]
    details = []
    for i in range(size):
        status = rng.choice(["valid", "valid", "invalid", "nullified"])
        details.append(NondhDetail(
            id=f"d{i}", nondh_id=f"n{i}", amendment_kind="Possessor", status=status,
            invalid_reason="reason" if status == "invalid" else None,
            owner_relations=[OwnerRelation(id=f"r{i}-{k}", owner_name=f"O{k}", area=10.0,
                                           is_valid=rng.random() < 0.5)
                             for k in range(rng.randint(1, 3))],
        ))
    rng.shuffle(details)
    return canonical_order(nondhs), details


# ═══════════════════════════════════════════════════
# 1. Full resolve
# ═══════════════════════════════════════════════════

class TestResolve:

    def test_single_radd_flips_predecessors(self, radd_chain):
        """#1 valid, #2 Radd, #3 valid → #1 invalid, #2 and #3 valid."""
        nondhs, details = radd_chain
        resolved = resolve(canonical_order(nondhs), details)
        assert _validity(resolved) == {"n1": False, "n2": True, "n3": True}

    def test_two_radds_cancel(self, radd_chain):
        nondhs, details = radd_chain
        details = [replace(d, status="invalid", invalid_reason="x") if d.id == "d3" else d
                   for d in details]
        resolved = resolve(canonical_order(nondhs), details)
        assert _validity(resolved) == {"n1": True, "n2": False, "n3": True}

    def test_nullified_does_not_flip(self, radd_chain):
        nondhs, details = radd_chain
        details = [replace(d, status="nullified", invalid_reason=None) if d.id == "d2" else d
                   for d in details]
        resolved = resolve(canonical_order(nondhs), details)
        assert _validity(resolved) == {"n1": True, "n2": True, "n3": True}

    def test_relation_overrides_are_overwritten(self):
        """A relation that disagrees with its siblings is brought in line."""
        nondhs = [Nondh(id="n1", number="1")]
        details = [NondhDetail(id="d1", nondh_id="n1", owner_relations=[
            OwnerRelation(id="a", owner_name="A", is_valid=True),
            OwnerRelation(id="b", owner_name="B", is_valid=False),
        ])]
        resolved = resolve(nondhs, details)
        assert [r.is_valid for r in resolved[0].owner_relations] == [True, True]

    def test_inputs_untouched_and_order_kept(self, radd_chain):
        nondhs, details = radd_chain
        shuffled = [details[2], details[0], details[1]]
        before = [r.is_valid for d in shuffled for r in d.owner_relations]
        resolved = resolve(canonical_order(nondhs), shuffled)
        assert [d.id for d in resolved] == ["d3", "d1", "d2"]
        assert [r.is_valid for d in shuffled for r in d.owner_relations] == before

    def test_unchanged_details_returned_as_is(self, radd_chain):
        nondhs, details = radd_chain
        resolved = resolve(canonical_order(nondhs), details)
        assert resolved[2] is details[2]

    def test_parity_property(self):
        """isValid(n) == (# invalid strictly after n) is even, on random chains."""
        rng = random.Random(7)
        for _ in range(50):
            order, details = _random_chain(rng, rng.randint(1, 25))
            validity = _validity(resolve(order, details))
            status = {d.nondh_id: d.status for d in details}
            for i, n in enumerate(order):
                after = sum(1 for m in order[i + 1:] if status[m.id] == "invalid")
                assert validity[n.id] == (after % 2 == 0)

    def test_idempotent(self):
        rng = random.Random(11)
        order, details = _random_chain(rng, 20)
        once = resolve(order, details)
        assert resolve(order, once) == once

    def test_derived_validity_matches(self, radd_chain):
        nondhs, details = radd_chain
        assert derived_validity(canonical_order(nondhs), details) == {
            "n1": False, "n2": True, "n3": True,
        }

    def test_orphan_detail_is_malformed(self, radd_chain):
        nondhs, details = radd_chain
        with pytest.raises(MalformedSnapshotError):
            resolve(canonical_order(nondhs[:2]), details)

    def test_duplicate_detail_is_malformed(self, radd_chain):
        nondhs, details = radd_chain
        extra = replace(details[0], id="d1-copy")
        with pytest.raises(MalformedSnapshotError):
            resolve(canonical_order(nondhs), details + [extra])

    def test_missing_detail_is_malformed(self, radd_chain):
        nondhs, details = radd_chain
        with pytest.raises(MalformedSnapshotError):
            resolve(canonical_order(nondhs), details[:2])


# ═══════════════════════════════════════════════════
# 2. Partial resolve
# ═══════════════════════════════════════════════════

class TestResolveFrom:

    def test_recomputes_only_prefix(self, radd_chain):
        nondhs, details = radd_chain
        order = canonical_order(nondhs)
        # poison #3's cached flag; resolve_from(…, 1) must not touch it
        details = [replace(d, owner_relations=[replace(r, is_valid=False) for r in d.owner_relations])
                   if d.id == "d3" else d for d in details]
        partial = resolve_from(order, details, 1)
        assert _validity(partial) == {"n1": False, "n2": True, "n3": False}

    def test_equivalent_to_full_resolve_on_prefix(self):
        """After one status change at k, resolve_from(k) == resolve on indices < k."""
        rng = random.Random(2024)
        for _ in range(40):
            order, details = _random_chain(rng, rng.randint(2, 20))
            settled = resolve(order, details)
            k = rng.randrange(len(order))
            changed_id = order[k].id
            new_status = "valid" if any(
                d.status == "invalid" for d in settled if d.nondh_id == changed_id
            ) else "invalid"
            edited = [replace(d, status=new_status, invalid_reason="r" if new_status == "invalid" else None)
                      if d.nondh_id == changed_id else d for d in settled]
            partial = {d.nondh_id: d for d in resolve_from(order, edited, k)}
            full = {d.nondh_id: d for d in resolve(order, edited)}
            for n in order[:k]:
                assert partial[n.id] == full[n.id]
            for n in order[k:]:
                assert partial[n.id] == full[n.id]

    def test_zero_index_changes_nothing(self, radd_chain):
        nondhs, details = radd_chain
        assert resolve_from(canonical_order(nondhs), details, 0) == details

    def test_out_of_range(self, radd_chain):
        nondhs, details = radd_chain
        with pytest.raises(ValueError):
            resolve_from(canonical_order(nondhs), details, 4)
        with pytest.raises(ValueError):
            resolve_from(canonical_order(nondhs), details, -1)
