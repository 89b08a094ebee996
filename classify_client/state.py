"""
Shared, read-only state for the request handlers
"""

import logging
from dataclasses import dataclass, field

from fastapi import Request

from .config import Settings
from .errors import GeoIpUnavailable
from .services.api_keys import ApiKeyPolicy, load_api_keys
from .services.client_ip import TrustedNetworkSet
from .services.geoip import GeoLocationService
from .services.prometheus_metrics import PrometheusMetrics, prometheus_metrics

logger = logging.getLogger("app")


@dataclass(frozen=True)
class EndpointState:
    settings: Settings = field(default_factory=Settings)
    geoip: GeoLocationService = field(default_factory=GeoLocationService)
    trusted_proxies: TrustedNetworkSet = field(default_factory=TrustedNetworkSet)
    api_key_policy: ApiKeyPolicy = field(default_factory=ApiKeyPolicy)
    metrics: PrometheusMetrics = prometheus_metrics

    @classmethod
    def from_settings(cls, settings: Settings, metrics: PrometheusMetrics = prometheus_metrics) -> "EndpointState":
        """Load everything the handlers need. Runs once, before serving."""
        trusted_proxies = TrustedNetworkSet.from_cidrs(settings.trusted_proxy_list)

        try:
            geoip = GeoLocationService.from_path(settings.geoip_db_path, metrics)
        except GeoIpUnavailable as e:
            # Keep serving; lookups answer 500 and the heartbeat reports it
            logger.error(e.message, extra={"component": "geoip"})
            geoip = GeoLocationService(None, metrics)
        metrics.set_geoip_loaded(geoip.loaded)

        api_keys = load_api_keys(settings.api_keys_file)
        metrics.set_api_keys_loaded(len(api_keys))

        logger.info("Endpoint state ready", extra={
            "component": "api",
            "trusted_proxies": [str(n) for n in trusted_proxies.networks],
            "api_keys": len(api_keys),
            "geoip_loaded": geoip.loaded,
        })

        return cls(
            settings=settings,
            geoip=geoip,
            trusted_proxies=trusted_proxies,
            api_key_policy=ApiKeyPolicy(api_keys, settings.downstream_key_pattern, "country", metrics),
            metrics=metrics,
        )


def get_state(request: Request) -> EndpointState:
    """FastAPI dependency returning the application's EndpointState"""
    return request.app.state.endpoint_state
