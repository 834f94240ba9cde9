"""Area unit converter — acre / guntha <-> square meters.

Square meters are canonical.  Acre-guntha is a presentation view:
``acres * SQM_PER_ACRE + gunthas * SQM_PER_GUNTHA`` reproduces the
canonical value within ``AREA_ROUNDTRIP_TOLERANCE_SQM``.

One guntha constant (``SQM_PER_GUNTHA`` in config) is used everywhere.
"""

import math
import logging
from dataclasses import dataclass
from typing import Any

from lrms.config import (
    GUNTHAS_PER_ACRE,
    SQM_PER_GUNTHA,
    SQM_PER_ACRE,
    GUNTHA_DECIMALS,
)

logger = logging.getLogger(__name__)

_UNIT_TO_SQM = {
    "acre": SQM_PER_ACRE,
    "acres": SQM_PER_ACRE,
    "guntha": SQM_PER_GUNTHA,
    "gunthas": SQM_PER_GUNTHA,
    "sq_m": 1.0,
    "sqm": 1.0,
}


@dataclass
class AcreGuntha:
    """Acre-guntha view of an area."""
    acres: int
    gunthas: float

    def to_dict(self) -> dict:
        return {"acres": self.acres, "gunthas": self.gunthas}


def _factor(unit: str) -> float:
    factor = _UNIT_TO_SQM.get((unit or "").strip().lower())
    if factor is None:
        raise ValueError(f"Unsupported area unit: {unit!r} (expected acre, guntha or sq_m)")
    return factor


def to_square_meters(value: float, unit: str) -> float:
    """Convert ``value`` expressed in ``unit`` to square meters."""
    return float(value) * _factor(unit)


def from_square_meters(sqm: float, unit: str) -> float:
    """Convert square meters to ``unit``."""
    return float(sqm) / _factor(unit)


def acre_guntha_to_sqm(acres: float, gunthas: float) -> float:
    """Combine an acre-guntha pair into square meters.

    Raises ValueError for negative parts or gunthas >= 40; such gunthas
    are refused, not carried over into acres.
    """
    if acres < 0 or gunthas < 0:
        raise ValueError("Area parts must be non-negative")
    if gunthas >= GUNTHAS_PER_ACRE:
        raise ValueError(f"Gunthas must be below {GUNTHAS_PER_ACRE}, got {gunthas}")
    return acres * SQM_PER_ACRE + gunthas * SQM_PER_GUNTHA


def split_acre_guntha(sqm: float) -> AcreGuntha:
    """Exact split of square meters into whole acres + fractional gunthas.

    Gunthas are rounded to ``GUNTHA_DECIMALS`` so that float noise right
    below a whole acre (e.g. 4.9999999 acres) normalizes to the next acre.
    """
    if sqm < 0:
        raise ValueError("Area must be non-negative")
    total_acres = sqm / SQM_PER_ACRE
    acres = math.floor(total_acres)
    gunthas = round((total_acres - acres) * GUNTHAS_PER_ACRE, GUNTHA_DECIMALS)
    if gunthas >= GUNTHAS_PER_ACRE:
        acres += 1
        gunthas = 0.0
    return AcreGuntha(acres=acres, gunthas=gunthas)


def display_acre_guntha(sqm: float) -> AcreGuntha:
    """Display rule: whole acres, gunthas rounded to an integer.

    ``gunthas == 40`` after rounding rolls over into the next acre.
    """
    if sqm < 0:
        raise ValueError("Area must be non-negative")
    total_acres = sqm / SQM_PER_ACRE
    acres = math.floor(total_acres)
    gunthas = round((total_acres - acres) * GUNTHAS_PER_ACRE)
    if gunthas == GUNTHAS_PER_ACRE:
        acres += 1
        gunthas = 0
    return AcreGuntha(acres=acres, gunthas=gunthas)


def format_area(sqm: float) -> str:
    """Human-readable area, e.g. ``"2 acre 15 guntha (9,611.28 sq.m)"``."""
    view = display_acre_guntha(max(sqm, 0.0))
    return f"{view.acres} acre {view.gunthas} guntha ({sqm:,.2f} sq.m)"


def parse_area(value: Any) -> float:
    """Parse an area payload into square meters.

    Accepts the upload shapes ``{"sqm": v}``, ``{"acre": a, "guntha": g}``,
    ``{"value": v, "unit": u}`` or a bare number (square meters).
    Missing / empty input is 0.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            raise ValueError(f"Unparseable area: {value!r}")
    if isinstance(value, dict):
        if value.get("sqm") is not None:
            return float(value["sqm"])
        if value.get("acre") is not None or value.get("guntha") is not None:
            acres = float(value.get("acre") or 0)
            gunthas = float(value.get("guntha") or 0)
            return acres * SQM_PER_ACRE + gunthas * SQM_PER_GUNTHA
        if value.get("value") is not None:
            return to_square_meters(float(value["value"]), value.get("unit") or "sq_m")
        return 0.0
    raise ValueError(f"Unparseable area: {value!r}")
