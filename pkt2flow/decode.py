"""Decoding of Ethernet, IP and transport headers into flow keys."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import replace

from .flows import FlowKey

ETHERTYPE_IP = 0x0800
ETHERTYPE_IPV6 = 0x86DD
ETHERTYPE_VLAN = 0x8100

IPPROTO_HOPOPTS = 0
IPPROTO_TCP = 6
IPPROTO_UDP = 17
IPPROTO_ROUTING = 43
IPPROTO_FRAGMENT = 44
IPPROTO_NONE = 59
IPPROTO_DSTOPTS = 60

TH_SYN = 0x02

_ETHER_HEADER_LEN = 14
_VLAN_HEADER_LEN = 4
_IPV4_HEADER_LEN = 20
_IPV6_HEADER_LEN = 40
_UDP_HEADER_LEN = 8
_TCP_HEADER_LEN = 20
_IPV6_HEADER_AGAIN = 255


class DecodeError(ValueError):
    """Raised when a packet is too short or not an IP packet."""


def decode_layer4(data: bytes, proto: int) -> tuple[int, int, int, bool]:
    """Return ``(protocol, sport, dport, syn)`` for a transport header.

    Protocols other than TCP and UDP give protocol 0 and no ports.
    """
    if proto == IPPROTO_UDP:
        if len(data) < _UDP_HEADER_LEN:
            raise DecodeError("truncated UDP header")
        sport, dport = struct.unpack_from("!HH", data)
        return IPPROTO_UDP, sport, dport, False
    if proto == IPPROTO_TCP:
        if len(data) < _TCP_HEADER_LEN:
            raise DecodeError("truncated TCP header")
        sport, dport = struct.unpack_from("!HH", data)
        return IPPROTO_TCP, sport, dport, bool(data[13] & TH_SYN)
    return 0, 0, 0, False


def decode_ipv4(data: bytes) -> tuple[FlowKey, bool]:
    """Decode an IPv4 packet into its flow key and whether it carries a SYN."""
    if len(data) < _IPV4_HEADER_LEN:
        raise DecodeError("truncated IPv4 header")
    src = ipaddress.IPv4Address(bytes(data[12:16]))
    dst = ipaddress.IPv4Address(bytes(data[16:20]))
    proto = data[9]
    (total,) = struct.unpack_from("!H", data, 2)
    data = data[:total]
    header_len = 4 * (data[0] & 0x0F) if data else 0
    if len(data) < header_len or not data:
        raise DecodeError("IPv4 header longer than packet")
    protocol, sport, dport, syn = decode_layer4(data[header_len:], proto)
    return FlowKey(src, dst, protocol, sport, dport), syn


def decode_ipv6(data: bytes) -> tuple[FlowKey, bool]:
    """Decode an IPv6 packet, skipping extension headers."""
    if len(data) < _IPV6_HEADER_LEN:
        raise DecodeError("truncated IPv6 header")
    nexthdr = data[6]
    src = ipaddress.IPv6Address(bytes(data[8:24]))
    dst = ipaddress.IPv6Address(bytes(data[24:40]))
    rest = data[_IPV6_HEADER_LEN:]
    while True:
        if nexthdr in (IPPROTO_HOPOPTS, IPPROTO_ROUTING, IPPROTO_DSTOPTS):
            if len(rest) < 2:
                raise DecodeError("truncated IPv6 option header")
            size = (1 + rest[1]) * 8
            if len(rest) < size:
                raise DecodeError("truncated IPv6 option header")
            nexthdr, rest = rest[0], rest[size:]
        elif nexthdr == IPPROTO_FRAGMENT:
            if len(rest) < 8:
                raise DecodeError("truncated IPv6 fragment header")
            nexthdr, rest = rest[0], rest[8:]
        elif nexthdr == IPPROTO_NONE:
            raise DecodeError("IPv6 packet without payload")
        elif nexthdr == _IPV6_HEADER_AGAIN:
            return decode_ipv6(rest)
        else:
            protocol, sport, dport, syn = decode_layer4(rest, nexthdr)
            return FlowKey(src, dst, protocol, sport, dport), syn


def decode_ip(data: bytes) -> tuple[FlowKey, bool]:
    """Decode an IPv4 or IPv6 packet according to its version field."""
    if not data:
        raise DecodeError("empty IP packet")
    version = data[0] >> 4
    if version == 4:
        return decode_ipv4(data)
    if version == 6:
        return decode_ipv6(data)
    raise DecodeError(f"unknown IP version {version}")


def decode_ethernet(data: bytes) -> tuple[FlowKey, bool]:
    """Decode an Ethernet frame, with an optional 802.1Q tag, carrying IP."""
    if len(data) < _ETHER_HEADER_LEN:
        raise DecodeError("truncated Ethernet header")
    (etype,) = struct.unpack_from("!H", data, 12)
    rest = data[_ETHER_HEADER_LEN:]
    is_vlan = etype == ETHERTYPE_VLAN
    if is_vlan:
        if len(rest) < _VLAN_HEADER_LEN:
            raise DecodeError("truncated VLAN header")
        (etype,) = struct.unpack_from("!H", rest, 2)
        rest = rest[_VLAN_HEADER_LEN:]
    if etype not in (ETHERTYPE_IP, ETHERTYPE_IPV6):
        raise DecodeError(f"not an IP frame: ethertype {etype:#06x}")
    key, syn = decode_ip(rest)
    return replace(key, is_vlan=is_vlan), syn