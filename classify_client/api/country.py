"""
Keyed country lookup
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from ..services.client_ip import request_client_ip
from ..state import EndpointState, get_state
from .response_builders import (
    build_country_not_found_response,
    build_lookup_response,
    build_wrong_key_response,
)

router = APIRouter(tags=["country"])

ENDPOINT = "country"


@router.get("/v1/country")
async def get_country(
    request: Request,
    key: Optional[str] = Query(None),
    state: EndpointState = Depends(get_state),
) -> Response:
    if not state.api_key_policy.authorize(key):
        return build_wrong_key_response()

    ip = request_client_ip(request, state.trusted_proxies)
    record = state.geoip.locate(ip)

    if record is None or not record.has_country:
        state.metrics.increment_miss(ENDPOINT)
        return build_country_not_found_response()

    state.metrics.increment_hit(ENDPOINT)
    return build_lookup_response({
        "country_code": record.iso_code or "",
        "country_name": record.name or "",
    })
