"""
Configuration module for classify-client
"""

import os
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field


def _truthy(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def env_list(key: str, default: str = "") -> List[str]:
    """Get a comma-separated list from an environment variable"""
    return _split_list(os.getenv(key, default))


def _read_version_from_repo(default: str = "dev") -> str:
    try:
        # repo root: classify_client/.. (one parent up)
        version_file = Path(__file__).resolve().parents[1] / "VERSION"
        v = version_file.read_text(encoding="utf-8").strip()
        if v:
            return v
    except OSError:
        pass
    return os.getenv("APP_VERSION", default)


APP_NAME = "classify-client"
API_VERSION = _read_version_from_repo()

# Reserved key format for the Firefox downstream integration
DEFAULT_DOWNSTREAM_KEY_PATTERN = r"^firefox-downstream-[A-Za-z0-9_]{1,40}$"

CACHE_CONTROL_NO_STORE = "max-age=0, no-cache, no-store, must-revalidate"

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
HTTP_LOG_EXCLUDE_PATHS = set(env_list("HTTP_LOG_EXCLUDE_PATHS", "/__lbheartbeat__,/__metrics__"))


class Settings(BaseModel):
    """Plain values handed to the classification core at startup"""

    host: str = "0.0.0.0"
    port: int = 8080
    geoip_db_path: str = "./GeoLite2-Country.mmdb"
    trusted_proxy_list: List[str] = Field(default_factory=list)
    api_keys_file: str = "./apiKeys.json"
    downstream_key_pattern: str = DEFAULT_DOWNSTREAM_KEY_PATTERN
    version_file: str = "./version.json"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables, falling back to defaults"""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            host=env.get("HOST", defaults.host),
            port=int(env.get("PORT", defaults.port)),
            geoip_db_path=env.get("GEOIP_DB_PATH", defaults.geoip_db_path),
            trusted_proxy_list=_split_list(env.get("TRUSTED_PROXY_LIST", "")),
            api_keys_file=env.get("API_KEYS_FILE", defaults.api_keys_file),
            downstream_key_pattern=env.get("DOWNSTREAM_KEY_PATTERN", defaults.downstream_key_pattern),
            version_file=env.get("VERSION_FILE", defaults.version_file),
            debug=_truthy(env.get("DEBUG", "false")),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
            log_format=env.get("LOG_FORMAT", defaults.log_format).lower(),
        )
