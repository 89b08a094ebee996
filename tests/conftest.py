"""Pytest fixtures: fake and on-disk country databases, recording metrics, test client."""
import ipaddress
from types import SimpleNamespace

import geoip2.errors
import pytest
from fastapi.testclient import TestClient

from classify_client.config import Settings
from classify_client.main import create_app
from classify_client.services.api_keys import ApiKeyPolicy
from classify_client.services.client_ip import TrustedNetworkSet
from classify_client.services.geoip import GeoLocationService
from classify_client.services.prometheus_metrics import PrometheusMetrics
from classify_client.state import EndpointState

# Addresses the fake database knows about, like the GeoLite2 test data
KNOWN_COUNTRIES = {
    "1.2.3.4": ("US", "United States"),
    "7.7.7.7": ("US", "United States"),
    "2.125.160.216": ("GB", "United Kingdom"),
    "2001:218::1": ("JP", "Japan"),
    # Record present but without a country (e.g. anonymous proxy ranges)
    "9.9.9.9": (None, None),
}


# Networks written to the on-disk test database
DATABASE_NETWORKS = {
    "1.2.3.0/24": ("US", "United States"),
    "7.7.7.0/24": ("US", "United States"),
    "2.125.160.0/24": ("GB", "United Kingdom"),
}

MMDB_METADATA_MARKER = b"\xab\xcd\xefMaxMind.com"


def _mmdb_control(type_id, size):
    if size < 29:
        first, extra = size, b""
    elif size < 285:
        first, extra = 29, bytes([size - 29])
    else:
        first, extra = 30, (size - 285).to_bytes(2, "big")
    if type_id <= 7:
        return bytes([(type_id << 5) | first]) + extra
    # Extended types: zero type bits, then the type number minus 7
    return bytes([first, type_id - 7]) + extra


def _mmdb_uint(type_id, value, width):
    payload = value.to_bytes(width, "big").lstrip(b"\x00")
    return _mmdb_control(type_id, len(payload)) + payload


def _mmdb_encode(value):
    """Encode str, dict and list values; bytes are taken as already encoded"""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        raw = value.encode("utf-8")
        return _mmdb_control(2, len(raw)) + raw
    if isinstance(value, dict):
        return _mmdb_control(7, len(value)) + b"".join(
            _mmdb_encode(k) + _mmdb_encode(v) for k, v in value.items()
        )
    if isinstance(value, list):
        return _mmdb_control(11, len(value)) + b"".join(_mmdb_encode(v) for v in value)
    raise TypeError(f"Cannot encode {type(value).__name__}")


def write_country_database(path, networks):
    """Write an IPv4 GeoIP2-Country database (24-bit records) for non-overlapping networks"""
    data = b""
    nodes = [[None, None]]
    for cidr, (iso_code, name) in networks.items():
        network = ipaddress.ip_network(cidr)
        offset = len(data)
        data += _mmdb_encode({"country": {"iso_code": iso_code, "names": {"en": name}}})

        address = int(network.network_address)
        node = 0
        for depth in range(network.prefixlen):
            bit = (address >> (31 - depth)) & 1
            if depth == network.prefixlen - 1:
                nodes[node][bit] = ("data", offset)
                break
            if nodes[node][bit] is None:
                nodes.append([None, None])
                nodes[node][bit] = ("node", len(nodes) - 1)
            node = nodes[node][bit][1]

    node_count = len(nodes)

    def record_value(entry):
        if entry is None:
            return node_count
        kind, value = entry
        return value if kind == "node" else node_count + 16 + value

    tree = b"".join(
        record_value(left).to_bytes(3, "big") + record_value(right).to_bytes(3, "big")
        for left, right in nodes
    )
    metadata = _mmdb_encode({
        "binary_format_major_version": _mmdb_uint(5, 2, 2),
        "binary_format_minor_version": _mmdb_uint(5, 0, 2),
        "build_epoch": _mmdb_uint(9, 1700000000, 8),
        "database_type": "GeoIP2-Country",
        "description": {"en": "classify-client test database"},
        "ip_version": _mmdb_uint(5, 4, 2),
        "languages": ["en"],
        "node_count": _mmdb_uint(6, node_count, 4),
        "record_size": _mmdb_uint(5, 24, 2),
    })

    with open(path, "wb") as f:
        f.write(tree + b"\x00" * 16 + data + MMDB_METADATA_MARKER + metadata)
    return path


class FakeCountryReader:
    """Stands in for geoip2.database.Reader opened on a country database"""

    def __init__(self, countries=None):
        self.countries = KNOWN_COUNTRIES if countries is None else countries
        self.closed = False
        self.lookups = []

    def country(self, ip):
        self.lookups.append(ip)
        key = str(ipaddress.ip_address(ip))
        if key not in self.countries:
            raise geoip2.errors.AddressNotFoundError(f"The address {key} is not in the database.")
        iso_code, name = self.countries[key]
        names = {"en": name} if name else {}
        return SimpleNamespace(country=SimpleNamespace(iso_code=iso_code, names=names))

    def close(self):
        self.closed = True


class RecordingMetrics(PrometheusMetrics):
    """Records emitted events as `name:tag` strings instead of exporting them"""

    def __init__(self):
        super().__init__()
        self.log = []

    def increment_location(self, country):
        self.log.append(f"location:country:{country}")

    def increment_api_key(self, endpoint, api_key):
        self.log.append(f"{endpoint}:api_key:{api_key}")

    def increment_hit(self, endpoint):
        self.log.append(f"{endpoint}_hit")

    def increment_miss(self, endpoint):
        self.log.append(f"{endpoint}_miss")

    def request_started(self):
        self.log.append("ongoing_requests:+1")

    def request_finished(self, success, seconds):
        self.log.append(f"response:{'success' if success else 'error'}")
        self.log.append("ongoing_requests:-1")


@pytest.fixture
def fake_reader():
    return FakeCountryReader()


@pytest.fixture
def metrics():
    return RecordingMetrics()


@pytest.fixture
def version_file(tmp_path):
    path = tmp_path / "version.json"
    path.write_text('{"source": "https://github.com/mozilla/classify-client", "version": "1.0.0", "commit": "abc123"}')
    return path


@pytest.fixture
def settings(version_file):
    return Settings(version_file=str(version_file), trusted_proxy_list=["127.0.0.1/32"])


@pytest.fixture
def state(settings, fake_reader, metrics):
    return EndpointState(
        settings=settings,
        geoip=GeoLocationService(fake_reader, metrics),
        trusted_proxies=TrustedNetworkSet.from_cidrs(settings.trusted_proxy_list),
        api_key_policy=ApiKeyPolicy({"testkey"}, settings.downstream_key_pattern, "country", metrics),
        metrics=metrics,
    )


@pytest.fixture
def client(state):
    """TestClient over an app whose state is injected; lifespan skips loading."""
    with TestClient(create_app(state=state)) as c:
        yield c


@pytest.fixture
def country_db(tmp_path):
    """Path to a real country database readable by geoip2"""
    return str(write_country_database(tmp_path / "GeoIP2-Country-Test.mmdb", DATABASE_NETWORKS))
