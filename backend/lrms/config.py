"""Application configuration."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from backend root (before any os.getenv calls)
load_dotenv(BASE_DIR / ".env")
TEMP_DIR = BASE_DIR / "temp"
SNAPSHOTS_DIR = Path(os.getenv("LRMS_SNAPSHOTS_DIR", str(TEMP_DIR / "snapshots")))

# Create directories
for d in [TEMP_DIR, SNAPSHOTS_DIR]:
    d.mkdir(parents=True, exist_ok=True)

# Area units: one guntha constant for every call site
GUNTHAS_PER_ACRE = 40
SQM_PER_GUNTHA = 101.1714
SQM_PER_ACRE = SQM_PER_GUNTHA * GUNTHAS_PER_ACRE   # 4046.856
AREA_ROUNDTRIP_TOLERANCE_SQM = 0.01                 # acre-guntha <-> sq.m must agree within this
AREA_EPSILON_SQM = float(os.getenv("LRMS_AREA_EPSILON", "1e-6"))  # float slack on cap comparisons
GUNTHA_DECIMALS = 9                                 # exact split rounds fractional gunthas to this

# Nondh statuses (Pramanik / Radd / Na manjoor)
STATUS_VALID = "valid"
STATUS_INVALID = "invalid"
STATUS_NULLIFIED = "nullified"
NONDH_STATUSES = (STATUS_VALID, STATUS_INVALID, STATUS_NULLIFIED)

# Bulk upload defaults
IMPORT_DEFAULT_INVALID_REASON = "NA"   # legacy uploads mark Radd rows without a reason as "NA"
IMPORT_DEFAULT_TENURE = "Navi"

# API
CORS_ORIGINS = [
    o.strip() for o in os.getenv(
        "LRMS_CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
    ).split(",") if o.strip()
]

# Debug trace mode: set LRMS_TRACE=1 to get detailed engine logs
TRACE_ENABLED = os.getenv("LRMS_TRACE", "").strip().lower() in ("1", "true", "yes")
