"""FastAPI application entry point."""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from lrms.api import nondh, land_records
from lrms.config import CORS_ORIGINS

logger = logging.getLogger(__name__)

app = FastAPI(
    title="LRMS Nondh Engine",
    description="Nondh ordering, validity chain and ownership succession for land records",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(nondh.router, prefix="/api/nondh", tags=["Nondh engine"])
app.include_router(land_records.router, prefix="/api/land-records", tags=["Land records"])


@app.get("/api/health")
async def health():
    return {"status": "operational", "platform": "LRMS Nondh Engine"}
