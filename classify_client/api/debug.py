"""
Debugging information about the server.

Only mounted when DEBUG is enabled; it echoes request headers and must not
be exposed by production servers.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from ..errors import ClientIpNotFound
from ..services.client_ip import request_client_ip
from ..state import EndpointState, get_state

router = APIRouter(tags=["debug"])


@router.get("/debug", include_in_schema=False)
async def debug_handler(request: Request, state: EndpointState = Depends(get_state)):
    try:
        client_ip = f"Ok({request_client_ip(request, state.trusted_proxies)})"
    except ClientIpNotFound as e:
        client_ip = f"Err({e.message})"

    headers = dict(request.headers)
    request_state = {
        "geoip_loaded": state.geoip.loaded,
        "trusted_proxies": [str(n) for n in state.trusted_proxies.networks],
        "api_keys": len(state.api_key_policy.allowed_keys),
        "settings": state.settings.model_dump(),
    }
    return PlainTextResponse(
        f"received headers: {headers}\n\nrequest state: {request_state}\n\nclient ip: {client_ip}"
    )
