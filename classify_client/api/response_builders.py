"""
Response builders for consistent classification responses
Ensures exact JSON bodies and headers for all outcomes
"""

from typing import Any, Dict

from fastapi.responses import JSONResponse, PlainTextResponse

from ..config import CACHE_CONTROL_NO_STORE
from ..errors import ClassifyError

COUNTRY_NOT_FOUND_BODY = {
    "errors": [
        {
            "domain": "geolocation",
            "reason": "notFound",
            "message": "Not found",
        }
    ],
    "code": 404,
    "message": "Not found",
}


def build_lookup_response(content: Dict[str, Any]) -> JSONResponse:
    """Build a 200 lookup response that intermediaries must not cache"""
    return JSONResponse(
        status_code=200,
        content=content,
        headers={"Cache-Control": CACHE_CONTROL_NO_STORE}
    )


def build_country_not_found_response() -> JSONResponse:
    """Build 404 response for an address with no known country"""
    return JSONResponse(status_code=404, content=COUNTRY_NOT_FOUND_BODY)


def build_wrong_key_response() -> PlainTextResponse:
    """Build 401 response; missing and rejected keys look the same to the caller"""
    return PlainTextResponse("Wrong key", status_code=401)


def build_classify_error_response(exc: ClassifyError) -> JSONResponse:
    """Build the response for a classification failure"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message}
    )
