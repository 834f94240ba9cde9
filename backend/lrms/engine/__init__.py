"""Nondh validity & ownership succession engine."""

from .errors import (
    AreaExceededError,
    MissingOldOwnerError,
    MissingReasonError,
    UnknownReferenceError,
    EngineResult,
    NotFoundError,
    MalformedSnapshotError,
    RevisionConflictError,
)
from .models import (
    SurveyRef,
    Nondh,
    NondhDetail,
    OwnerRelation,
    OwnerRecord,
    TransferSpec,
    AffectedEntry,
    Adjudication,
    Snapshot,
    changed_detail_ids,
)
from .area import to_square_meters, from_square_meters, split_acre_guntha, display_acre_guntha
from .ordering import canonical_order, canonical_index, find_by_number, date_bounds, is_valid_date_order
from .validity import resolve, resolve_from, derived_validity
from .succession import previous_owners, apply_transfer, adjudication_owner_pool, import_second_right_owners
from .affected import propagate_affected_status, PropagationResult
from .checks import run_snapshot_checks
from .importer import import_land_record, ImportResult
from .store import JsonSnapshotStore

__all__ = [
    "AreaExceededError",
    "MissingOldOwnerError",
    "MissingReasonError",
    "UnknownReferenceError",
    "EngineResult",
    "NotFoundError",
    "MalformedSnapshotError",
    "RevisionConflictError",
    "SurveyRef",
    "Nondh",
    "NondhDetail",
    "OwnerRelation",
    "OwnerRecord",
    "TransferSpec",
    "AffectedEntry",
    "Adjudication",
    "Snapshot",
    "changed_detail_ids",
    "to_square_meters",
    "from_square_meters",
    "split_acre_guntha",
    "display_acre_guntha",
    "canonical_order",
    "canonical_index",
    "find_by_number",
    "date_bounds",
    "is_valid_date_order",
    "resolve",
    "resolve_from",
    "derived_validity",
    "previous_owners",
    "apply_transfer",
    "adjudication_owner_pool",
    "import_second_right_owners",
    "propagate_affected_status",
    "PropagationResult",
    "run_snapshot_checks",
    "import_land_record",
    "ImportResult",
    "JsonSnapshotStore",
]
