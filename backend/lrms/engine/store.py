"""JSON snapshot store — one file per land record.

The engine never does I/O itself; this is the persistence collaborator
used by the API and the CLI.  Writes are atomic (temp file in the same
directory + ``os.replace``) and carry an optimistic revision check so two
write cycles on the same land record cannot silently overwrite each other.
"""

import os
import re
import json
import logging
import tempfile
from dataclasses import replace
from pathlib import Path

from lrms.config import SNAPSHOTS_DIR
from lrms.engine.errors import RevisionConflictError
from lrms.engine.models import Snapshot

logger = logging.getLogger(__name__)

_SAFE_ID_RE = re.compile(r'^[A-Za-z0-9_.-]+$')


class JsonSnapshotStore:
    def __init__(self, base_dir: Path | str = SNAPSHOTS_DIR):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, land_record_id: str) -> Path:
        if not land_record_id or not _SAFE_ID_RE.match(land_record_id) or land_record_id.startswith("."):
            raise ValueError(f"Invalid land record id: {land_record_id!r}")
        return self.base_dir / f"{land_record_id}.json"

    def exists(self, land_record_id: str) -> bool:
        return self._path(land_record_id).exists()

    def list_ids(self) -> list[str]:
        return sorted(p.stem for p in self.base_dir.glob("*.json"))

    def load(self, land_record_id: str) -> Snapshot:
        path = self._path(land_record_id)
        if not path.exists():
            raise FileNotFoundError(f"Land record {land_record_id} not found")
        data = json.loads(path.read_text(encoding="utf-8"))
        return Snapshot.from_dict(data)

    def save(self, snapshot: Snapshot) -> Snapshot:
        """Persist a snapshot and return it with ``revision + 1``.

        The snapshot's ``revision`` must equal the stored one (0 for a new
        record); otherwise someone else wrote in between.

        Raises:
            RevisionConflictError: stale revision.
        """
        path = self._path(snapshot.land_record_id)
        stored_revision = 0
        if path.exists():
            stored = json.loads(path.read_text(encoding="utf-8"))
            stored_revision = int(stored.get("revision") or 0)
        if snapshot.revision != stored_revision:
            raise RevisionConflictError(
                f"Land record {snapshot.land_record_id}: revision {snapshot.revision} "
                f"is stale (stored revision {stored_revision})"
            )

        saved = replace(snapshot, revision=stored_revision + 1)
        data = json.dumps(saved.to_dict(), indent=2, ensure_ascii=False)
        # Write to temp in the same directory so os.replace() is same-device
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.base_dir), suffix=".tmp", prefix="lr_"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(data)
            os.replace(tmp_path, str(path))
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        logger.info(f"Saved land record {saved.land_record_id} "
                    f"(revision {saved.revision}, {len(saved.nondhs)} nondh(s))")
        return saved
