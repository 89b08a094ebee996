import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import HTTP_LOG_EXCLUDE_PATHS
from .logging_config import request_id_var
from .services.prometheus_metrics import PrometheusMetrics, prometheus_metrics

logger = logging.getLogger("app")


class TracingMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for request IDs, response timing and request logging"""

    def __init__(self, app: ASGIApp, metrics: PrometheusMetrics = prometheus_metrics,
                 exclude_paths: Optional[set] = None):
        super().__init__(app)
        self.metrics = metrics
        self.exclude_paths = HTTP_LOG_EXCLUDE_PATHS if exclude_paths is None else exclude_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)

        # Peer address only; the resolved client IP is the handlers' business
        peer = request.client.host if request.client else "unknown"

        self.metrics.request_started()
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - start_time
            self.metrics.request_finished(success=False, seconds=elapsed)
            logger.error(f"Request failed: {e}", extra={
                "method": request.method,
                "path": request.url.path,
                "status": 500,
                "latency_ms": round(elapsed * 1000, 2),
                "client_ip": peer,
            })
            raise
        else:
            elapsed = time.perf_counter() - start_time
            status = response.status_code
            self.metrics.request_finished(success=200 <= status < 300, seconds=elapsed)
            self._log_request(request.method, request.url.path, status, round(elapsed * 1000, 2), peer)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)

    def _log_request(self, method: str, path: str, status: int, latency_ms: float, client_ip: str):
        """Log one HTTP request; 4xx at warning, 5xx at error"""
        if path in self.exclude_paths:
            return

        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        logger.log(level, "HTTP Request", extra={
            "method": method,
            "path": path,
            "status": status,
            "latency_ms": latency_ms,
            "client_ip": client_ip,
        })
