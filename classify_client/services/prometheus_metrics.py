"""
Prometheus metrics for classify-client
"""

import logging
import os

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger("app")

# Tag used when a lookup produced no ISO code
UNKNOWN_COUNTRY = "unknown"

# Tag used when the caller supplied no usable API key
INVALID_KEY = "invalid-key"

# Longest api_key label value; longer keys are truncated
MAX_API_KEY_LABEL_LENGTH = 64

# Build info
BUILD_INFO = Gauge(
    'build_info',
    'Build information',
    ['version', 'image', 'image_tag']
)

# Geolocation results
LOCATION_TOTAL = Counter(
    'location',
    'Geolocation lookups by resolved country',
    ['country']
)

# Per-endpoint API key usage
COUNTRY_TOTAL = Counter(
    'country',
    'Country endpoint authorization attempts by API key',
    ['api_key']
)

ENDPOINT_HIT_TOTAL = {
    'country': Counter('country_hit', 'Country endpoint requests with a known location'),
    'classify_client': Counter('classify_client_hit', 'Classify endpoint requests with a known location'),
}

ENDPOINT_MISS_TOTAL = {
    'country': Counter('country_miss', 'Country endpoint requests with an unknown location'),
    'classify_client': Counter('classify_client_miss', 'Classify endpoint requests with an unknown location'),
}

ENDPOINT_API_KEY_TOTAL = {
    'country': COUNTRY_TOTAL,
}

# Request timing
ONGOING_REQUESTS = Gauge(
    'ongoing_requests',
    'Number of requests currently being handled'
)

RESPONSE_SECONDS = Histogram(
    'response_seconds',
    'Response time in seconds',
    ['status'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Startup state
GEOIP_LOADED = Gauge(
    'geoip_loaded',
    'GeoIP database loaded status (1=loaded, 0=not loaded)'
)

API_KEYS_LOADED = Gauge(
    'api_keys_loaded',
    'Number of API keys in the allow-list'
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics.

    Emission is best-effort: a failing metric is logged and never surfaces
    to the request that triggered it.
    """

    def __init__(self):
        self._setup_build_info()

    def _setup_build_info(self):
        """Set up build information gauge."""
        version = os.getenv("APP_VERSION", "dev")
        image = os.getenv("IMAGE", "mozilla/classify-client")
        image_tag = os.getenv("IMAGE_TAG", "latest")

        BUILD_INFO.labels(
            version=version,
            image=image,
            image_tag=image_tag
        ).set(1)

    def increment_location(self, country: str):
        """Count one geolocation result."""
        try:
            LOCATION_TOTAL.labels(country=country).inc()
        except Exception as e:
            logger.error(f"Could not send metric: {e}")

    def increment_api_key(self, endpoint: str, api_key: str):
        """Count one authorization attempt for an endpoint."""
        try:
            ENDPOINT_API_KEY_TOTAL[endpoint].labels(api_key=api_key[:MAX_API_KEY_LABEL_LENGTH]).inc()
        except Exception as e:
            logger.error(f"Could not send metric: {e}")

    def increment_hit(self, endpoint: str):
        """Count a request that resolved to a location."""
        try:
            ENDPOINT_HIT_TOTAL[endpoint].inc()
        except Exception as e:
            logger.error(f"Could not send metric: {e}")

    def increment_miss(self, endpoint: str):
        """Count a request whose location was unknown."""
        try:
            ENDPOINT_MISS_TOTAL[endpoint].inc()
        except Exception as e:
            logger.error(f"Could not send metric: {e}")

    def request_started(self):
        try:
            ONGOING_REQUESTS.inc()
        except Exception as e:
            logger.error(f"Could not send metric: {e}")

    def request_finished(self, success: bool, seconds: float):
        try:
            RESPONSE_SECONDS.labels(status="success" if success else "error").observe(seconds)
            ONGOING_REQUESTS.dec()
        except Exception as e:
            logger.error(f"Could not send metric: {e}")

    def set_geoip_loaded(self, loaded: bool):
        """Set GeoIP loaded status."""
        GEOIP_LOADED.set(1 if loaded else 0)

    def set_api_keys_loaded(self, count: int):
        """Set the allow-list size."""
        API_KEYS_LOADED.set(count)

    def get_metrics(self) -> bytes:
        """Get Prometheus metrics in text format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get the content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST


# Global metrics instance
prometheus_metrics = PrometheusMetrics()
