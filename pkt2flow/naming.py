"""Names of the dump files written for each flow."""

from __future__ import annotations

import ipaddress

from .flows import FlowKey


def _format_address(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str:
    if address.version == 4:
        return str(address)
    words = [int.from_bytes(address.packed[i:i + 2], "big") for i in range(0, 16, 2)]
    if address.ipv4_mapped is not None:
        return f"::ffff:{address.ipv4_mapped}"
    if not any(words[:6]) and words[6]:
        tail = ipaddress.IPv4Address(address.packed[12:])
        return f"::{tail}"
    return address.compressed


def new_file_name(key: FlowKey, timestamp: int) -> str:
    """File name for a flow starting at ``timestamp`` (seconds)."""
    suffix = "_vlan" if key.is_vlan else ""
    return (
        f"{_format_address(key.src)}_{key.sport}_"
        f"{_format_address(key.dst)}_{key.dport}_{timestamp}{suffix}.pcap"
    )