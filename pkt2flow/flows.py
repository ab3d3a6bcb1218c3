"""Flow keys, per-flow dump state and the flow lookup table."""

from __future__ import annotations

import enum
import ipaddress
import socket
from dataclasses import dataclass, field
from typing import Union

FLOW_TIMEOUT = 1800  # seconds
HASH_MULTIPLIER = 37
HASH_TBL_SIZE = 48611

_UINT32 = 0xFFFFFFFF

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class DumpFlags(enum.IntFlag):
    """Which kinds of flows besides TCP flows opened by a SYN are dumped."""

    NONE = 0
    OTHER = 1
    TCP_NOSYN = 2
    UDP = 4


class DumpStatus(enum.Enum):
    """Kind of a flow, which decides the folder its dump file goes to."""

    UNSET = 0
    TCP_SYN = 1
    TCP_NOSYN = 2
    UDP = 3


@dataclass(frozen=True)
class FlowKey:
    """Addresses, ports and protocol identifying one flow in either direction."""

    src: IPAddress
    dst: IPAddress
    protocol: int = 0
    sport: int = 0
    dport: int = 0
    is_vlan: bool = False

    def __post_init__(self) -> None:
        src = ipaddress.ip_address(self.src)
        dst = ipaddress.ip_address(self.dst)
        if src.version != dst.version:
            raise ValueError(f"address families differ: {src} and {dst}")
        for port in (self.sport, self.dport):
            if not 0 <= port <= 0xFFFF:
                raise ValueError(f"port out of range: {port}")
        object.__setattr__(self, "src", src)
        object.__setattr__(self, "dst", dst)
        object.__setattr__(self, "is_vlan", bool(self.is_vlan))

    @property
    def family(self) -> int:
        """The socket address family of both addresses."""
        return socket.AF_INET if self.src.version == 4 else socket.AF_INET6

    def matches(self, other: FlowKey) -> bool:
        """Whether ``other`` belongs to the same flow, in either direction."""
        if self.family != other.family or self.protocol != other.protocol:
            return False
        forward = (self.src, self.dst, self.sport, self.dport)
        if forward == (other.src, other.dst, other.sport, other.dport):
            return True
        return forward == (other.dst, other.src, other.dport, other.sport)

    def bucket(self) -> int:
        """Index of the table bucket this key falls into."""
        return hash_tuple(self)


def _hashf(data: bytes, h: int) -> int:
    for byte in data:
        h = (h * HASH_MULTIPLIER + byte) & _UINT32
    return h


def _port_bytes(port: int) -> bytes:
    # Ports enter the hash in little-endian host order.
    return port.to_bytes(2, "little")


def _directional_hash(a: IPAddress, b: IPAddress, pa: int, pb: int) -> int:
    h = _hashf(a.packed, 0)
    h = _hashf(b.packed, h)
    if pa:
        h = _hashf(_port_bytes(pa), h)
    if pb:
        h = _hashf(_port_bytes(pb), h)
    return h


def hash_tuple(key: FlowKey) -> int:
    """Direction-independent bucket index of ``key`` in ``[0, HASH_TBL_SIZE)``."""
    forward = _directional_hash(key.src, key.dst, key.sport, key.dport)
    backward = _directional_hash(key.dst, key.src, key.dport, key.sport)
    return ((forward + backward) & _UINT32) % HASH_TBL_SIZE


@dataclass
class DumpFile:
    """State of the dump file that the packets of one flow are written to."""

    file_name: str | None = None
    pkts: int = 0
    status: DumpStatus = DumpStatus.UNSET
    start_time: int = 0

    def reset(self) -> None:
        """Return to the empty state: no packets, no name, no status."""
        self.file_name = None
        self.pkts = 0
        self.status = DumpStatus.UNSET
        self.start_time = 0


@dataclass
class IpPair:
    """A registered flow and the state of its dump file."""

    key: FlowKey
    pdf: DumpFile = field(default_factory=DumpFile)


class FlowTable:
    """Hash table of registered flows, looked up regardless of direction."""

    def __init__(self) -> None:
        self._buckets: dict[int, list[IpPair]] = {}

    def find(self, key: FlowKey) -> IpPair | None:
        """Return the registered pair that ``key`` belongs to, or None."""
        for pair in self._buckets.get(key.bucket(), ()):
            if pair.key.matches(key):
                return pair
        return None

    def register(self, key: FlowKey) -> IpPair:
        """Register a new flow for ``key`` with an empty dump file."""
        pair = IpPair(key)
        self._buckets.setdefault(key.bucket(), []).insert(0, pair)
        return pair

    def clear(self) -> None:
        """Forget every registered flow."""
        self._buckets.clear()

    def __len__(self) -> int:
        return sum(len(chain) for chain in self._buckets.values())