"""
API key allow-list and authorization policy
"""

import enum
import json
import logging
import re
from typing import FrozenSet, Iterable, Optional, Pattern, Union

from ..config import DEFAULT_DOWNSTREAM_KEY_PATTERN
from .prometheus_metrics import INVALID_KEY, PrometheusMetrics, prometheus_metrics

logger = logging.getLogger("app")


def load_api_keys(path: str) -> FrozenSet[str]:
    """Read the allow-list: a JSON array of key strings.

    A missing or unparseable file is logged and yields an empty set so the
    service still starts; only reserved-pattern keys are then accepted.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            contents = f.read()
    except OSError as e:
        logger.error(f"Error reading api keys file. {e}")
        return frozenset()

    try:
        value = json.loads(contents)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing api keys file. {e}")
        return frozenset()

    if not isinstance(value, list):
        logger.error("Error parsing api keys file. Expected a JSON array")
        return frozenset()

    return frozenset(item for item in value if isinstance(item, str))


class AuthDecision(enum.Enum):
    AUTHORIZED = "authorized"
    DENIED = "denied"

    def __bool__(self) -> bool:
        return self is AuthDecision.AUTHORIZED


class ApiKeyPolicy:
    """Decides whether a caller-supplied key may use an endpoint.

    A key matching the reserved downstream pattern is accepted without
    consulting the allow-list. Every evaluation is counted once under the
    endpoint's metric, tagged with the raw key (or `invalid-key` when none
    was given).
    """

    def __init__(
        self,
        allowed_keys: Iterable[str] = (),
        downstream_pattern: Union[str, Pattern] = DEFAULT_DOWNSTREAM_KEY_PATTERN,
        endpoint: str = "country",
        metrics: PrometheusMetrics = prometheus_metrics,
    ):
        self.allowed_keys = frozenset(allowed_keys)
        self.downstream_pattern = re.compile(downstream_pattern)
        self.endpoint = endpoint
        self.metrics = metrics

    def is_downstream_key(self, key: str) -> bool:
        return self.downstream_pattern.fullmatch(key) is not None

    def authorize(self, key: Optional[str]) -> AuthDecision:
        if not key:
            self.metrics.increment_api_key(self.endpoint, INVALID_KEY)
            return AuthDecision.DENIED

        self.metrics.increment_api_key(self.endpoint, key)

        if self.is_downstream_key(key) or key in self.allowed_keys:
            return AuthDecision.AUTHORIZED
        return AuthDecision.DENIED
