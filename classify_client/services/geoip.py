"""
Country lookup against a MaxMind country database
"""

import logging
from dataclasses import dataclass
from typing import Optional

import geoip2.database
import geoip2.errors
import maxminddb

from ..errors import GeoIpUnavailable, LookupFailure
from .client_ip import IpAddress
from .prometheus_metrics import UNKNOWN_COUNTRY, PrometheusMetrics, prometheus_metrics

logger = logging.getLogger("app")


@dataclass(frozen=True)
class CountryRecord:
    """Country found for an address; either field may be missing"""

    iso_code: Optional[str] = None
    name: Optional[str] = None

    @property
    def has_country(self) -> bool:
        return self.iso_code is not None or self.name is not None


class GeoLocationService:
    """Looks up the country of an IP address.

    A service without a reader is the "database not loaded" state: every
    lookup fails with GeoIpUnavailable. The reader is shared read-only
    between requests.
    """

    def __init__(self, reader=None, metrics: PrometheusMetrics = prometheus_metrics):
        self._reader = reader
        self.metrics = metrics

    @classmethod
    def from_path(cls, path: str, metrics: PrometheusMetrics = prometheus_metrics) -> "GeoLocationService":
        """Open the database file, memory-mapped when the C extension is available"""
        try:
            reader = geoip2.database.Reader(path)
        except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
            raise GeoIpUnavailable.from_source(f"Could not open geoip database at {path}", e) from e

        logger.info("GeoIP database loaded", extra={
            "component": "geoip",
            "event": "loaded",
            "db_path": path,
            "database_type": reader.metadata().database_type,
        })
        return cls(reader, metrics)

    @property
    def loaded(self) -> bool:
        return self._reader is not None

    def locate(self, ip: IpAddress) -> Optional[CountryRecord]:
        """Return the country record for `ip`, or None when the database has no entry"""
        if self._reader is None:
            raise GeoIpUnavailable("No geoip database available")

        try:
            response = self._reader.country(ip)
        except geoip2.errors.AddressNotFoundError:
            record = None
        except (maxminddb.InvalidDatabaseError, geoip2.errors.GeoIP2Error, OSError, TypeError, ValueError) as e:
            raise LookupFailure.from_source(type(e).__name__, e) from e
        else:
            country = response.country
            record = CountryRecord(iso_code=country.iso_code, name=country.names.get("en"))

        iso_code = record.iso_code if record is not None else None
        self.metrics.increment_location(iso_code or UNKNOWN_COUNTRY)
        return record

    def close(self):
        if self._reader is not None:
            self._reader.close()
            self._reader = None
