"""Configuration, fixtures and frame builders for pytest tests."""

import pytest
import sys
import os
import socket
import struct

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


DST_MAC = b'\x00\x11\x22\x33\x44\x55'
SRC_MAC = b'\x00\xaa\xbb\xcc\xdd\xee'


def ethernet_header(ether_type=0x0800):
    return DST_MAC + SRC_MAC + struct.pack('>H', ether_type)


def ipv4_header(src='10.1.2.3', dst='192.168.1.1', proto=6, total_len=20, ihl=5):
    """IPv4 header; a header-length field below 5 still lays out 20 bytes."""
    hdr = struct.pack(
        '>BBHHHBBH4s4s',
        (4 << 4) | ihl,  # Version=4, IHL
        0,               # TOS
        total_len,
        1,               # ID
        0,               # Flags/Fragment
        64,              # TTL
        proto,
        0,               # Checksum (skip for test)
        socket.inet_aton(src),
        socket.inet_aton(dst),
    )
    if ihl > 5:
        hdr += b'\x00' * ((ihl - 5) * 4)
    return hdr


def tcp_header(sport=12345, dport=80, flags=0x02, data_offset=5):
    hdr = struct.pack(
        '>HHIIBBHHH',
        sport,
        dport,
        1,                  # Seq
        0,                  # Ack
        data_offset << 4,   # Data offset, reserved
        flags,
        8192,               # Window
        0,                  # Checksum
        0,                  # Urgent pointer
    )
    if data_offset > 5:
        hdr += b'\x01' * ((data_offset - 5) * 4)
    return hdr


def tcp_frame(src='10.1.2.3', dst='192.168.1.1', sport=12345, dport=80, flags=0x02,
              payload=b'', ihl=5, data_offset=5, total_len=None):
    """Ethernet + IPv4 + TCP frame."""
    tcp = tcp_header(sport, dport, flags, data_offset)
    if total_len is None:
        total_len = max(ihl, 5) * 4 + len(tcp) + len(payload)
    return ethernet_header() + ipv4_header(src, dst, 6, total_len, ihl) + tcp + payload


def icmp_frame(src='172.16.0.5', dst='8.8.8.8', ihl=5):
    """Ethernet + IPv4 + ICMP echo request."""
    icmp = struct.pack('>BBHHH', 8, 0, 0, 1, 1)
    return ethernet_header() + ipv4_header(src, dst, 1, max(ihl, 5) * 4 + len(icmp), ihl) + icmp


def udp_frame(src='192.168.1.10', dst='8.8.8.8', sport=5353, dport=53, payload=b'\x00' * 12):
    udp = struct.pack('>HHHH', sport, dport, 8 + len(payload), 0) + payload
    return ethernet_header() + ipv4_header(src, dst, 17, 20 + len(udp)) + udp


def ip_frame(proto, src='192.168.1.20', dst='192.168.1.1', payload=b'\x00' * 20):
    return ethernet_header() + ipv4_header(src, dst, proto, 20 + len(payload)) + payload


def arp_frame(sender='10.1.2.3', target='10.1.2.1'):
    """Ethernet + ARP who-has request."""
    arp = struct.pack('>HHBBH6s4s6s4s', 1, 0x0800, 6, 4, 1, SRC_MAC,
                      socket.inet_aton(sender), b'\x00' * 6, socket.inet_aton(target))
    return ethernet_header(0x0806) + arp


def write_pcap(path, frames, link_type=1, snaplen=65535):
    """Write raw frames to a little-endian pcap file."""
    with open(path, 'wb') as f:
        f.write(b'\xd4\xc3\xb2\xa1')           # Magic number
        f.write(struct.pack('<HH', 2, 4))      # Version 2.4
        f.write(struct.pack('<iIii', 0, 0, snaplen, link_type))
        for i, frame in enumerate(frames):
            f.write(struct.pack('<IIII', 1234567890 + i, 0, len(frame), len(frame)))
            f.write(frame)
    return path


@pytest.fixture
def scenario_frames():
    """TCP SYN to port 80 from 10.1.2.3, a malformed IP frame, an ICMP echo."""
    return [
        tcp_frame(src='10.1.2.3', dst='192.168.1.1', sport=40000, dport=80, flags=0x02),
        icmp_frame(src='10.9.9.9', dst='192.168.1.1', ihl=3),
        icmp_frame(src='172.16.0.5', dst='8.8.8.8'),
    ]


@pytest.fixture
def aggregator():
    from hbtad.core.aggregator import StatisticsAggregator
    return StatisticsAggregator()


@pytest.fixture
def scenario_pcap(tmp_path, scenario_frames):
    return write_pcap(tmp_path / 'scenario.pcap', scenario_frames)
