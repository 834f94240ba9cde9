"""Land-record endpoints backed by the JSON snapshot store."""

import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import APIRouter, HTTPException, Depends

from lrms.api.nondh import engine_errors
from lrms.engine.checks import run_snapshot_checks
from lrms.engine.errors import RevisionConflictError
from lrms.engine.importer import import_land_record
from lrms.engine.models import changed_detail_ids
from lrms.engine.ordering import canonical_order
from lrms.engine.store import JsonSnapshotStore
from lrms.engine.validity import resolve

router = APIRouter()
logger = logging.getLogger(__name__)

_store: JsonSnapshotStore | None = None

# One writer per land record at a time; entries live while someone holds or waits
_record_locks: dict[str, asyncio.Lock] = {}
_lock_users: dict[str, int] = {}


def get_store() -> JsonSnapshotStore:
    global _store
    if _store is None:
        _store = JsonSnapshotStore()
    return _store


@asynccontextmanager
async def _record_lock(land_record_id: str):
    lock = _record_locks.setdefault(land_record_id, asyncio.Lock())
    _lock_users[land_record_id] = _lock_users.get(land_record_id, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _lock_users[land_record_id] -= 1
        if not _lock_users[land_record_id]:
            del _lock_users[land_record_id]
            del _record_locks[land_record_id]


def _load(store: JsonSnapshotStore, land_record_id: str):
    try:
        return store.load(land_record_id)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Land record not found")


def _save(store: JsonSnapshotStore, snapshot):
    try:
        return store.save(snapshot)
    except RevisionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/upload")
async def upload_land_record(payload: dict, store: JsonSnapshotStore = Depends(get_store)):
    """Import a legacy JSON upload, resolve it and save it as a new record."""
    with engine_errors():
        result = import_land_record(payload)
    async with _record_lock(result.snapshot.land_record_id):
        with engine_errors():
            saved = _save(store, result.snapshot)
    return {
        "land_record_id": saved.land_record_id,
        "revision": saved.revision,
        "stats": result.stats,
        "errors": result.skipped or None,
    }


@router.get("/")
async def list_land_records(store: JsonSnapshotStore = Depends(get_store)):
    return {"land_record_ids": store.list_ids()}


@router.get("/{land_record_id}")
async def get_land_record(land_record_id: str, store: JsonSnapshotStore = Depends(get_store)):
    with engine_errors():
        snapshot = _load(store, land_record_id)
    return snapshot.to_dict()


@router.post("/{land_record_id}/resolve")
async def resolve_land_record(land_record_id: str, store: JsonSnapshotStore = Depends(get_store)):
    """Re-run the validity chain on a stored record and save what changed."""
    async with _record_lock(land_record_id):
        with engine_errors():
            snapshot = _load(store, land_record_id)
            order = canonical_order(snapshot.nondhs)
            resolved = resolve(order, snapshot.details)
            changed = changed_detail_ids(snapshot.details, resolved)
            if changed:
                snapshot.details = resolved
                snapshot = _save(store, snapshot)
                logger.info(f"Land record {land_record_id}: {len(changed)} detail(s) re-resolved")
    return {
        "land_record_id": land_record_id,
        "revision": snapshot.revision,
        "changed_detail_ids": changed,
    }


@router.get("/{land_record_id}/checks")
async def land_record_checks(land_record_id: str, store: JsonSnapshotStore = Depends(get_store)):
    with engine_errors():
        snapshot = _load(store, land_record_id)
        checks = run_snapshot_checks(canonical_order(snapshot.nondhs), snapshot.details)
    return {"land_record_id": land_record_id, "checks": checks}
