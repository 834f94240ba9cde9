"""Stateless engine endpoints.

Every request carries the snapshot pieces it needs; nothing is read from
or written to disk here.  Business-rule failures come back as HTTP 422
with the failure record as ``detail``.
"""

import logging
from contextlib import contextmanager
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from lrms.engine.area import (
    to_square_meters,
    from_square_meters,
    split_acre_guntha,
    display_acre_guntha,
    format_area,
)
from lrms.engine.affected import propagate_affected_status
from lrms.engine.checks import run_snapshot_checks
from lrms.engine.errors import NotFoundError
from lrms.engine.models import Nondh, NondhDetail, SurveyRef, TransferSpec, changed_detail_ids
from lrms.engine.ordering import canonical_order
from lrms.engine.succession import apply_transfer, previous_owners, transfer_state, remaining_area
from lrms.engine.validity import resolve

router = APIRouter()
logger = logging.getLogger(__name__)


@contextmanager
def engine_errors():
    """Map raised engine errors onto HTTP status codes."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        # MalformedSnapshotError is a ValueError
        raise HTTPException(status_code=400, detail=str(e))


class OrderRequest(BaseModel):
    nondhs: list[dict]


class SnapshotRequest(BaseModel):
    nondhs: list[dict]
    details: list[dict]


class PreviousOwnersRequest(SnapshotRequest):
    before_nondh_id: str
    survey_ref: dict | None = None


class TransferRequest(BaseModel):
    detail: dict
    transfer: dict


class AffectedStatusRequest(SnapshotRequest):
    adjudication_detail_id: str
    affected_entry_id: str
    new_status: str
    reason: str | None = None


class AreaConvertRequest(BaseModel):
    value: float
    unit: str = "sq_m"
    to_unit: str = "sq_m"


def _parse(request: SnapshotRequest) -> tuple[list[Nondh], list[NondhDetail]]:
    nondhs = [Nondh.from_dict(n) for n in request.nondhs]
    details = [NondhDetail.from_dict(d) for d in request.details]
    return canonical_order(nondhs), details


@router.post("/order")
async def order_nondhs(request: OrderRequest):
    """Canonical legal order of the given nondhs."""
    with engine_errors():
        order = canonical_order([Nondh.from_dict(n) for n in request.nondhs])
    return {"order": [n.to_dict() for n in order]}


@router.post("/resolve")
async def resolve_validity(request: SnapshotRequest):
    with engine_errors():
        order, details = _parse(request)
        resolved = resolve(order, details)
    return {
        "details": [d.to_dict() for d in resolved],
        "changed_detail_ids": changed_detail_ids(details, resolved),
    }


@router.post("/previous-owners")
async def list_previous_owners(request: PreviousOwnersRequest):
    """Eligible-owner pool seen from ``before_nondh_id``."""
    with engine_errors():
        order, details = _parse(request)
        owners = previous_owners(order, details, SurveyRef.from_dict(request.survey_ref),
                                 request.before_nondh_id)
    return {"owners": [o.to_dict() for o in owners]}


@router.post("/transfer")
async def transfer(request: TransferRequest):
    with engine_errors():
        detail = NondhDetail.from_dict(request.detail)
        spec = TransferSpec.from_dict(request.transfer)
        result = apply_transfer(detail, spec)
    if not result.ok:
        logger.info(f"Transfer rejected on detail {detail.id}: {result.error.code}")
        raise HTTPException(status_code=422, detail=result.error.to_dict())
    updated = result.value
    transfer_id = None if updated.is_transfer else spec.id
    return {
        "detail": updated.to_dict(),
        "state": transfer_state(updated, transfer_id),
        "remaining_area": remaining_area(updated, transfer_id),
    }


@router.post("/affected-status")
async def set_affected_status(request: AffectedStatusRequest):
    with engine_errors():
        order, details = _parse(request)
        result = propagate_affected_status(
            order, details, request.adjudication_detail_id,
            request.affected_entry_id, request.new_status, request.reason,
        )
    if not result.ok:
        raise HTTPException(status_code=422, detail=result.error.to_dict())
    return result.value.to_dict()


@router.post("/checks")
async def snapshot_checks(request: SnapshotRequest):
    with engine_errors():
        order, details = _parse(request)
        checks = run_snapshot_checks(order, details)
    summary: dict[str, int] = {}
    for c in checks:
        summary[c["status"]] = summary.get(c["status"], 0) + 1
    return {"checks": checks, "summary": summary}


@router.post("/area/convert")
async def convert_area(request: AreaConvertRequest):
    with engine_errors():
        if request.value < 0:
            raise ValueError("Area must be non-negative")
        sqm = to_square_meters(request.value, request.unit)
        converted = from_square_meters(sqm, request.to_unit)
        return {
            "sqm": sqm,
            "value": converted,
            "unit": request.to_unit,
            "acre_guntha": split_acre_guntha(sqm).to_dict(),
            "display": display_acre_guntha(sqm).to_dict(),
            "text": format_area(sqm),
        }
