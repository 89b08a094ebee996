"""
Canned responses for proposed and deprecated endpoints
"""

from fastapi import APIRouter
from fastapi.responses import Response

router = APIRouter(tags=["canned"])


def forbidden() -> Response:
    return Response(status_code=403)


for path in ("/v1/geolocate", "/v1/geosubmit", "/v2/geosubmit"):
    router.add_api_route(path, forbidden, methods=["POST"], include_in_schema=False)
