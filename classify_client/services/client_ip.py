"""
Client IP resolution behind trusted proxies

The trace runs from the server outward: the network peer first, then the
X-Forwarded-For entries from last to first. Resolution skips the leading
run of trusted proxies and stops at the first address outside it.
"""

import ipaddress
from typing import Iterable, List, Optional, Sequence, Union

from starlette.requests import Request

from ..errors import ClientIpNotFound

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
NetworkRange = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

FORWARDED_FOR_HEADER = "x-forwarded-for"


class TrustedNetworkSet:
    """Immutable set of trusted proxy ranges"""

    __slots__ = ("_networks",)

    def __init__(self, networks: Iterable[NetworkRange] = ()):
        self._networks = tuple(networks)

    @classmethod
    def from_cidrs(cls, cidrs: Iterable[str]) -> "TrustedNetworkSet":
        """Parse CIDR strings; a bare address becomes a single-host range.

        Raises ValueError on an unparseable entry.
        """
        return cls(ipaddress.ip_network(cidr.strip(), strict=False) for cidr in cidrs)

    @property
    def networks(self) -> tuple:
        return self._networks

    def contains(self, ip: IpAddress) -> bool:
        # Membership across address families is False, never an error
        return any(ip.version == net.version and ip in net for net in self._networks)

    def __contains__(self, ip: IpAddress) -> bool:
        return self.contains(ip)

    def __len__(self) -> int:
        return len(self._networks)

    def __repr__(self) -> str:
        return f"TrustedNetworkSet({[str(n) for n in self._networks]})"


def _parse_ip(value: Optional[str]) -> Optional[IpAddress]:
    if not value:
        return None
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


def ip_trace(peer: Optional[Union[str, IpAddress]], forwarded_for: Optional[str]) -> List[IpAddress]:
    """Build the hop chain for one request, nearest the server first.

    Tokens that do not parse as an IP address are dropped.
    """
    trace: List[IpAddress] = []

    if peer is not None:
        peer_ip = peer if not isinstance(peer, str) else _parse_ip(peer)
        if peer_ip is not None:
            trace.append(peer_ip)

    if forwarded_for:
        hops = [ip for ip in (_parse_ip(token) for token in forwarded_for.split(",")) if ip is not None]
        trace.extend(reversed(hops))

    return trace


def resolve_client_ip(trace: Sequence[IpAddress], trusted: TrustedNetworkSet) -> IpAddress:
    """Return the first address in the trace that is not a trusted proxy.

    Scanning stops at that address; anything beyond it was written by a hop
    we do not trust. Raises ClientIpNotFound when the trace is empty or
    every address in it is trusted.
    """
    for ip in trace:
        if not trusted.contains(ip):
            return ip
    raise ClientIpNotFound("Could not determine IP")


def request_client_ip(request: Request, trusted: TrustedNetworkSet) -> IpAddress:
    """Resolve the client IP of a Starlette/FastAPI request"""
    peer = request.client.host if request.client else None
    # Repeated headers are equivalent to one comma-joined header
    forwarded_for = ",".join(request.headers.getlist(FORWARDED_FOR_HEADER)) or None
    return resolve_client_ip(ip_trace(peer, forwarded_for), trusted)
