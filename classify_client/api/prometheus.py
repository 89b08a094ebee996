"""
Prometheus exposition of the classification metrics
"""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse

from ..state import EndpointState, get_state

router = APIRouter(tags=["Metrics"])

logger = logging.getLogger("app")

METRICS_UNAVAILABLE = "# Metrics temporarily unavailable\n"


@router.get("/__metrics__", include_in_schema=False)
async def metrics_handler(state: EndpointState = Depends(get_state)) -> Response:
    try:
        body = state.metrics.get_metrics()
    except Exception as e:
        logger.error(f"Could not render metrics: {e}", extra={"component": "metrics"})
        return PlainTextResponse(METRICS_UNAVAILABLE)
    return Response(content=body, media_type=state.metrics.get_content_type())
