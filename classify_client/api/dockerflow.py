"""
Dockerflow endpoints - no authentication required
"""

import ipaddress
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from ..errors import ClassifyError
from ..state import EndpointState, get_state

router = APIRouter(tags=["dockerflow"])

logger = logging.getLogger("app")

# Known address used to check that the database answers sensibly
HEARTBEAT_IP = ipaddress.ip_address("1.2.3.4")
HEARTBEAT_COUNTRY = "US"


@router.get("/__lbheartbeat__", include_in_schema=False)
async def lbheartbeat():
    return Response(status_code=200)


@router.get("/__heartbeat__", include_in_schema=False)
async def heartbeat(state: EndpointState = Depends(get_state)):
    try:
        record = state.geoip.locate(HEARTBEAT_IP)
        geoip_ok = record is not None and record.iso_code == HEARTBEAT_COUNTRY
    except ClassifyError as e:
        logger.warning(f"Heartbeat lookup failed: {e.message}", extra={"component": "dockerflow"})
        geoip_ok = False

    return JSONResponse(
        status_code=200 if geoip_ok else 503,
        content={"geoip": geoip_ok}
    )


@router.get("/__version__", include_in_schema=False)
async def version(state: EndpointState = Depends(get_state)):
    version_file = state.settings.version_file
    try:
        with open(version_file, "r", encoding="utf-8") as f:
            data = f.read()
    except OSError as e:
        logger.error(f"Could not read version file {version_file}: {e}", extra={"component": "dockerflow"})
        return JSONResponse(status_code=500, content={"message": "version file unavailable"})
    return Response(content=data, media_type="application/json")
