import ipaddress
import struct

import pytest

from pkt2flow.decode import (
    DecodeError,
    decode_ethernet,
    decode_ip,
    decode_ipv4,
    decode_ipv6,
    decode_layer4,
)

MAC_A = b"\x02\x00\x00\x00\x00\x01"
MAC_B = b"\x02\x00\x00\x00\x00\x02"


def tcp_segment(sport, dport, flags):
    return struct.pack("!HHIIBBHHH", sport, dport, 0, 0, 0x50, flags, 0, 0, 0)


def udp_datagram(sport, dport, payload=b""):
    return struct.pack("!HHHH", sport, dport, 8 + len(payload), 0) + payload


def ipv4_packet(proto, payload, src="10.0.0.1", dst="10.0.0.2", total=None):
    if total is None:
        total = 20 + len(payload)
    header = struct.pack(
        "!BBHHHBBH4s4s",
        0x45, 0, total, 0, 0, 64, proto, 0,
        ipaddress.IPv4Address(src).packed,
        ipaddress.IPv4Address(dst).packed,
    )
    return header + payload


def ipv6_packet(nexthdr, payload, src="2001:db8::1", dst="2001:db8::2"):
    header = struct.pack(
        "!IHBB16s16s",
        0x60000000, len(payload), nexthdr, 64,
        ipaddress.IPv6Address(src).packed,
        ipaddress.IPv6Address(dst).packed,
    )
    return header + payload


def ethernet(payload, etype=0x0800, vlan=False):
    if vlan:
        return MAC_A + MAC_B + struct.pack("!HHH", 0x8100, 5, etype) + payload
    return MAC_A + MAC_B + struct.pack("!H", etype) + payload


def test_tcp_syn_frame():
    key, syn = decode_ethernet(ethernet(ipv4_packet(6, tcp_segment(1234, 80, 0x02))))
    assert syn is True
    assert key.src == ipaddress.IPv4Address("10.0.0.1")
    assert key.dst == ipaddress.IPv4Address("10.0.0.2")
    assert (key.protocol, key.sport, key.dport) == (6, 1234, 80)
    assert key.is_vlan is False


def test_tcp_ack_is_not_syn():
    _, syn = decode_ethernet(ethernet(ipv4_packet(6, tcp_segment(1234, 80, 0x10))))
    assert syn is False


def test_syn_ack_counts_as_syn():
    _, syn = decode_ethernet(ethernet(ipv4_packet(6, tcp_segment(80, 1234, 0x12))))
    assert syn is True


def test_udp_frame():
    key, syn = decode_ethernet(ethernet(ipv4_packet(17, udp_datagram(53, 5353, b"q"))))
    assert (key.protocol, key.sport, key.dport) == (17, 53, 5353)
    assert syn is False


def test_other_protocol_has_no_ports():
    key, syn = decode_ethernet(ethernet(ipv4_packet(1, b"\x08\x00\x00\x00")))
    assert (key.protocol, key.sport, key.dport) == (0, 0, 0)
    assert key.src == ipaddress.IPv4Address("10.0.0.1")
    assert syn is False


def test_vlan_tagged_frame():
    frame = ethernet(ipv4_packet(17, udp_datagram(10, 20)), vlan=True)
    key, _ = decode_ethernet(frame)
    assert key.is_vlan is True
    assert (key.sport, key.dport) == (10, 20)


def test_short_frame_raises():
    with pytest.raises(DecodeError):
        decode_ethernet(MAC_A + MAC_B)


def test_non_ip_ethertype_raises():
    with pytest.raises(DecodeError):
        decode_ethernet(ethernet(b"\x00" * 28, etype=0x0806))


def test_ethernet_padding_is_ignored():
    packet = ipv4_packet(17, udp_datagram(1, 2)) + b"\x00" * 10
    key, _ = decode_ethernet(ethernet(packet))
    assert (key.sport, key.dport) == (1, 2)


def test_ip_total_length_truncates_transport():
    packet = ipv4_packet(6, tcp_segment(1, 2, 0x02), total=24)
    with pytest.raises(DecodeError):
        decode_ipv4(packet)


def test_short_ipv4_raises():
    with pytest.raises(DecodeError):
        decode_ipv4(b"\x45" + b"\x00" * 10)


def test_ipv6_udp():
    key, _ = decode_ipv6(ipv6_packet(17, udp_datagram(547, 546)))
    assert key.src == ipaddress.IPv6Address("2001:db8::1")
    assert key.dst == ipaddress.IPv6Address("2001:db8::2")
    assert (key.protocol, key.sport, key.dport) == (17, 547, 546)


def test_ipv6_skips_hop_by_hop_and_fragment_headers():
    payload = bytes([44, 0]) + b"\x00" * 6 + bytes([6]) + b"\x00" * 7 + tcp_segment(5, 6, 0x02)
    key, syn = decode_ip(ipv6_packet(0, payload))
    assert (key.protocol, key.sport, key.dport) == (6, 5, 6)
    assert syn is True


def test_ipv6_no_next_header_raises():
    with pytest.raises(DecodeError):
        decode_ipv6(ipv6_packet(59, b""))


def test_ipv6_truncated_option_header_raises():
    with pytest.raises(DecodeError):
        decode_ipv6(ipv6_packet(60, bytes([17, 1]) + b"\x00" * 6))


def test_decode_ip_rejects_empty_and_unknown_version():
    with pytest.raises(DecodeError):
        decode_ip(b"")
    with pytest.raises(DecodeError):
        decode_ip(b"\x50" + b"\x00" * 39)


def test_decode_layer4_short_headers_raise():
    with pytest.raises(DecodeError):
        decode_layer4(b"\x00" * 7, 17)
    with pytest.raises(DecodeError):
        decode_layer4(b"\x00" * 19, 6)


def test_decode_layer4_tcp_ports():
    assert decode_layer4(tcp_segment(443, 50000, 0x10), 6) == (6, 443, 50000, False)