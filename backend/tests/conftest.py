"""Shared fixtures for the nondh engine test suite."""

import pytest

from lrms.engine.models import (
    Nondh,
    NondhDetail,
    OwnerRelation,
    SurveyRef,
    Adjudication,
    AffectedEntry,
)


# ═══════════════════════════════════════════════════
# Snapshot fixtures (small land records with known answers)
# ═══════════════════════════════════════════════════

@pytest.fixture
def radd_chain():
    """Nondhs #1..#3 on one survey number; #2 is Radd.

    Chain validity: #1 invalid (one Radd after it), #2 and #3 valid.
    """
    nondhs = [Nondh(id=f"n{i}", number=str(i), affected_survey_refs=[SurveyRef("311/1")])
              for i in (1, 2, 3)]
    details = [
        NondhDetail(id="d1", nondh_id="n1", amendment_kind="Possessor", date="2001-01-01",
                    owner_relations=[OwnerRelation(id="r1", owner_name="Ramesh", area=1000.0)]),
        NondhDetail(id="d2", nondh_id="n2", amendment_kind="Correction", status="invalid",
                    invalid_reason="Entered twice", date="2002-01-01",
                    owner_relations=[OwnerRelation(id="r2", owner_name="Ramesh", area=1000.0)]),
        NondhDetail(id="d3", nondh_id="n3", amendment_kind="Possessor", date="2003-01-01",
                    owner_relations=[OwnerRelation(id="r3", owner_name="Suresh", area=1000.0)]),
    ]
    return nondhs, details


@pytest.fixture
def succession_chain():
    """Possession, a partial sale and a full inheritance, then an open slot.

      1  Possessor      A 1000, X 500
      2  SaleTransfer   A 1000 -> B 600, C 300     (A keeps 100)
      3  Inheritance    X 500  -> D 500            (X fully passed on)
      4  Possessor      (no owners yet)
    """
    nondhs = [Nondh(id=f"n{i}", number=str(i)) for i in (1, 2, 3, 4)]
    details = [
        NondhDetail(id="d1", nondh_id="n1", amendment_kind="Possessor", date="2001-01-01",
                    owner_relations=[
                        OwnerRelation(id="r1a", owner_name="A", area=1000.0),
                        OwnerRelation(id="r1x", owner_name="X", area=500.0),
                    ]),
        NondhDetail(id="d2", nondh_id="n2", amendment_kind="SaleTransfer", date="2002-01-01",
                    old_owner_name="A", old_owner_area=1000.0,
                    owner_relations=[
                        OwnerRelation(id="r2b", owner_name="B", area=600.0),
                        OwnerRelation(id="r2c", owner_name="C", area=300.0),
                    ]),
        NondhDetail(id="d3", nondh_id="n3", amendment_kind="Inheritance", date="2003-01-01",
                    old_owner_name="X", old_owner_area=500.0,
                    owner_relations=[OwnerRelation(id="r3d", owner_name="D", area=500.0)]),
        NondhDetail(id="d4", nondh_id="n4", amendment_kind="Possessor", date="2004-01-01"),
    ]
    return nondhs, details


@pytest.fixture
def hukam_chain():
    """Three plain nondhs followed by a Hukam that rules on #2."""
    nondhs = [Nondh(id=f"n{i}", number=str(i)) for i in (1, 2, 3, 4)]
    details = [
        NondhDetail(id=f"d{i}", nondh_id=f"n{i}", amendment_kind="Possessor", date=f"200{i}-01-01",
                    owner_relations=[OwnerRelation(id=f"r{i}", owner_name=f"Owner {i}", area=100.0)])
        for i in (1, 2, 3)
    ]
    details.append(NondhDetail(
        id="d4", nondh_id="n4", amendment_kind="Adjudication", date="2004-01-01",
        owner_relations=[OwnerRelation(id="r4", owner_name="Owner 4", area=100.0)],
        adjudication=Adjudication(
            authority="SSRD",
            adjudication_date="2004-01-01",
            affected_entries=[AffectedEntry(id="a1", referenced_nondh_number="2")],
        ),
    ))
    return nondhs, details


@pytest.fixture
def legacy_upload():
    """Legacy JSON upload in the shape produced by the data-entry tool."""
    return {
        "nondhs": [
            {"number": "1", "affectedSNos": [{"number": "123", "type": "block_no"},
                                             {"number": "124/1", "type": "s_no"}]},
            {"number": "2", "affectedSNos": ['{"number": "124/1", "type": "s_no"}']},
            {"number": "3", "affectedSNos": [{"number": "234/2", "type": "re_survey_no"}]},
        ],
        "nondhDetails": [
            {
                "nondhNumber": "1", "type": "Kabjedaar", "date": "15012015",
                "status": "Pramaanik",
                "owners": [
                    {"name": "Owner 1", "area": {"acre": 3, "guntha": 0}},
                    {"name": "Owner 2", "area": {"sqm": 10117}},
                ],
            },
            {
                "nondhNumber": "2", "type": "Varsai", "date": "20052018",
                "status": "Pramaanik", "oldOwner": "Owner 1",
                "newOwners": [
                    {"name": "New Owner 1", "area": {"acre": 1, "guntha": 20}},
                    {"name": "New Owner 2", "area": {"acre": 1, "guntha": 20}},
                ],
            },
            {
                "nondhNumber": "3", "type": "Hukam", "date": "10032019",
                "hukamDate": "05032019", "hukamType": "SSRD", "status": "Radd",
                "affectedNondhDetails": [{"nondhNo": "1", "status": "Radd"}],
                "owners": [{"name": "Court Appointed Owner", "area": {"sqm": 20234}}],
            },
            {"nondhNumber": "9", "type": "Vechand"},
            {"nondhNumber": "2", "type": "Bhet"},
        ],
    }


@pytest.fixture
def snapshot_store(tmp_path):
    """JSON snapshot store rooted in a per-test temp dir."""
    from lrms.engine.store import JsonSnapshotStore
    return JsonSnapshotStore(tmp_path / "snapshots")


@pytest.fixture
def api_client(snapshot_store):
    """TestClient with the land-record store pointed at a temp dir."""
    from fastapi.testclient import TestClient
    from lrms.main import app
    from lrms.api.land_records import get_store

    app.dependency_overrides[get_store] = lambda: snapshot_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
