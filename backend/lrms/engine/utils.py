"""Shared helpers for the nondh engine.

  - Date parsing (ISO + common Indian day-first forms)
  - Nondh number normalization and segment parsing
  - Owner name normalization for pool de-duplication
"""

import re
import uuid
import logging
from datetime import datetime
from typing import Optional

from lrms.config import TRACE_ENABLED

logger = logging.getLogger(__name__)


def trace(log: logging.Logger, msg: str):
    """Emit a trace-level debug message when LRMS_TRACE is enabled."""
    if TRACE_ENABLED:
        log.debug(f"[TRACE] {msg}")


# ═══════════════════════════════════════════════════
# 1. DATES
# ═══════════════════════════════════════════════════

_DATE_FORMATS = [
    "%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%d.%m.%Y",
    "%Y/%m/%d", "%d%m%Y",
]


def parse_date(date_str: str) -> Optional[datetime]:
    """Parse a date string trying multiple formats."""
    if not date_str or not isinstance(date_str, str):
        return None
    date_str = date_str.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt)
        except ValueError:
            continue
    return None


def legacy_date_to_iso(date_str: str) -> str:
    """``DDMMYYYY`` (bulk upload) -> ``YYYY-MM-DD``; anything else parsed best-effort.

    Returns "" when nothing parses.
    """
    if not date_str:
        return ""
    s = str(date_str).strip()
    if len(s) == 8 and s.isdigit():
        s = f"{s[4:8]}-{s[2:4]}-{s[0:2]}"
    d = parse_date(s)
    return d.strftime("%Y-%m-%d") if d else ""


# ═══════════════════════════════════════════════════
# 2. NONDH NUMBERS
# ═══════════════════════════════════════════════════

_LEADING_INT_RE = re.compile(r'^\s*(\d+)')
_SEGMENT_SPLIT_RE = re.compile(r'[-/]')


def normalize_nondh_number(number) -> str:
    """Display numbers are compared as trimmed strings."""
    return str(number if number is not None else "").strip()


def leading_int(number: str) -> int:
    """Leading integer of a nondh number; non-numeric numbers count as 0.

    Examples:
      "12"     → 12
      "10-35"  → 10
      "7/2"    → 7
      "A-4"    → 0
    """
    m = _LEADING_INT_RE.match(number or "")
    return int(m.group(1)) if m else 0


def number_segments(number: str) -> list[str]:
    """Segments after the leading one: ``"10-35/40"`` → ``["35", "40"]``."""
    parts = _SEGMENT_SPLIT_RE.split((number or "").strip())
    return [p.strip() for p in parts[1:]]


# ═══════════════════════════════════════════════════
# 3. NAMES & IDS
# ═══════════════════════════════════════════════════

def normalize_name(name: str) -> str:
    """Case/whitespace-insensitive key for owner names."""
    return re.sub(r'\s+', ' ', (name or "").strip()).lower()


# Fixed namespace so derived ids are reproducible across runs
_ID_NAMESPACE = uuid.UUID("7b4d6c1e-2f0a-4f53-9a51-3c2e8d9f6a10")


def derived_id(*parts: str) -> str:
    """Deterministic id from its parts (uuid5)."""
    return str(uuid.uuid5(_ID_NAMESPACE, "|".join(str(p) for p in parts)))


def new_id() -> str:
    return str(uuid.uuid4())
