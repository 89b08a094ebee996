"""
Unauthenticated client classification: request time and country
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..services.client_ip import request_client_ip
from ..state import EndpointState, get_state
from .response_builders import build_lookup_response

router = APIRouter(tags=["classify"])

ENDPOINT = "classify_client"


@router.get("/")
@router.get("/api/v1/classify_client/")
async def classify_client(request: Request, state: EndpointState = Depends(get_state)) -> JSONResponse:
    request_time = datetime.now(timezone.utc)
    ip = request_client_ip(request, state.trusted_proxies)
    record = state.geoip.locate(ip)

    if record is not None and record.iso_code is not None:
        state.metrics.increment_hit(ENDPOINT)
    else:
        state.metrics.increment_miss(ENDPOINT)

    return build_lookup_response({
        "request_time": request_time.isoformat().replace("+00:00", "Z"),
        "country": record.iso_code if record is not None else None,
    })
