"""
A server that tells clients what time it is and where they are in the world.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from .api.canned import router as canned_router
from .api.classify import router as classify_router
from .api.country import router as country_router
from .api.debug import router as debug_router
from .api.dockerflow import router as dockerflow_router
from .api.prometheus import router as prometheus_router
from .api.response_builders import build_classify_error_response
from .config import API_VERSION, APP_NAME, Settings
from .errors import ClassifyError
from .logging_config import setup_logging
from .middleware import TracingMiddleware
from .services.prometheus_metrics import prometheus_metrics
from .state import EndpointState

logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(application: FastAPI):
    # Startup: blocking loads happen here, never on the request path
    if getattr(application.state, "endpoint_state", None) is None:
        settings = application.state.settings
        setup_logging(settings.log_level, settings.log_format)
        application.state.endpoint_state = EndpointState.from_settings(settings)

    logger.info("classify-client ready", extra={"component": "api", "version": API_VERSION})
    try:
        yield
    finally:
        application.state.endpoint_state.geoip.close()
        logger.info("classify-client shutting down", extra={"component": "api"})


async def classify_error_handler(request: Request, exc: ClassifyError):
    if exc.status_code >= 500:
        logger.error(f"Classification failed: {exc.message}", extra={
            "path": request.url.path,
            "error_type": type(exc).__name__,
        })
    return build_classify_error_response(exc)


def create_app(settings: Optional[Settings] = None, state: Optional[EndpointState] = None) -> FastAPI:
    """Build the application; `state` bypasses startup loading (used by tests)"""
    if settings is None:
        settings = state.settings if state is not None else Settings.from_env()

    application = FastAPI(title=APP_NAME, version=API_VERSION, lifespan=lifespan)
    application.state.settings = settings
    application.state.endpoint_state = state

    application.add_middleware(TracingMiddleware, metrics=state.metrics if state is not None else prometheus_metrics)
    application.add_exception_handler(ClassifyError, classify_error_handler)

    application.include_router(classify_router)
    application.include_router(country_router)
    application.include_router(dockerflow_router)
    application.include_router(prometheus_router)
    application.include_router(canned_router)
    if settings.debug:
        application.include_router(debug_router)

    return application


app = create_app()


def run():
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)

    import uvicorn

    logger.info(f"Starting {APP_NAME} on {settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        access_log=False,
        log_config=None,
        # The peer address must reach the resolver untouched
        proxy_headers=False,
    )


if __name__ == "__main__":
    run()
