"""Failure records and exceptions for the nondh engine.

Two families:
  - Business-rule failures (area over the cap, missing old owner, missing
    reason, unknown affected reference) are plain dataclasses *returned*
    inside an :class:`EngineResult` so the caller can show them to a user.
  - Broken caller contracts (unknown ids, malformed snapshots) are raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any


# ═══════════════════════════════════════════════════
# RETURNED FAILURES
# ═══════════════════════════════════════════════════

@dataclass
class AreaExceededError:
    """A new-owner area would exceed what the old owner still holds."""
    owner_id: str
    requested: float
    max_allowed: float
    code: str = field(default="AREA_EXCEEDED", init=False)

    @property
    def message(self) -> str:
        return (f"Requested {self.requested:.2f} sq.m for owner {self.owner_id} "
                f"but only {self.max_allowed:.2f} sq.m remains with the old owner")

    def to_dict(self) -> dict:
        return {**asdict(self), "message": self.message}


@dataclass
class MissingOldOwnerError:
    """A transfer-kind detail has no old owner selected."""
    detail_id: str
    code: str = field(default="MISSING_OLD_OWNER", init=False)

    @property
    def message(self) -> str:
        return f"Detail {self.detail_id}: select the old owner before assigning new owners"

    def to_dict(self) -> dict:
        return {**asdict(self), "message": self.message}


@dataclass
class MissingReasonError:
    """Status set to invalid (Radd) without a reason."""
    detail_id: str
    code: str = field(default="MISSING_REASON", init=False)

    @property
    def message(self) -> str:
        return f"Detail {self.detail_id}: a reason is required when status is Radd"

    def to_dict(self) -> dict:
        return {**asdict(self), "message": self.message}


@dataclass
class UnknownReferenceError:
    """An affected entry points at a nondh number that is not in the record."""
    referenced_number: str
    code: str = field(default="UNKNOWN_REFERENCE", init=False)

    @property
    def message(self) -> str:
        return f"Nondh number {self.referenced_number!r} does not exist in this land record"

    def to_dict(self) -> dict:
        return {**asdict(self), "message": self.message}


EngineFailure = AreaExceededError | MissingOldOwnerError | MissingReasonError | UnknownReferenceError


@dataclass
class EngineResult:
    """Either a value or a business-rule failure, never both."""
    value: Any = None
    error: EngineFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "EngineResult":
        return cls(value=value)

    @classmethod
    def failure(cls, error: EngineFailure) -> "EngineResult":
        return cls(error=error)


# ═══════════════════════════════════════════════════
# RAISED ERRORS
# ═══════════════════════════════════════════════════

class NotFoundError(LookupError):
    """An id passed by the caller is not present in the snapshot."""


class MalformedSnapshotError(ValueError):
    """The snapshot breaks a structural invariant (caller contract)."""


class RevisionConflictError(RuntimeError):
    """A snapshot write carried a stale revision number."""
