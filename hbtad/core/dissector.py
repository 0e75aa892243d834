"""
Frame dissector - Ethernet/IPv4/TCP header views with strict bounds checking.

Turns a raw captured frame into one of three results:

    TcpPacket       IPv4 + TCP headers located, payload offset/length computed
    OtherIpPacket   IPv4 header located, protocol is not TCP
    MalformedPacket the frame could not be dissected (reason attached)

Every header field is read only after the captured length has been checked
to cover it; a short capture is reported as malformed, never read past.
Dissection is a pure function: no counters are touched here.
"""

from __future__ import annotations

import socket
import struct
from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag
from typing import Union


# Default snapshot length (maximum bytes captured per frame)
SNAP_LEN = 1518

# Ethernet headers are always exactly 14 bytes; never derived from a struct size
SIZE_ETHERNET = 14
ETHER_ADDR_LEN = 6
ETHERTYPE_IPV4 = 0x0800

MIN_IP_HEADER_LEN = 20
MIN_TCP_HEADER_LEN = 20

_ETHERNET = struct.Struct('!6s6sH')
# vhl, tos, total length, id, frag, ttl, proto, checksum, src, dst
_IPV4 = struct.Struct('!BBHHHBBHII')
# sport, dport, seq, ack, offx2, flags
_TCP = struct.Struct('!HHIIBB')


class IPProtocol(IntEnum):
    """IPv4 protocol numbers the aggregator distinguishes."""
    IP = 0
    ICMP = 1
    IPIP = 4
    TCP = 6
    UDP = 17


class TCPFlags(IntFlag):
    """TCP flag bits, in wire order."""
    FIN = 0x01
    SYN = 0x02
    RST = 0x04
    PUSH = 0x08
    ACK = 0x10
    URG = 0x20
    ECE = 0x40
    CWR = 0x80


class MalformedReason(Enum):
    """Why a frame could not be dissected."""
    TRUNCATED_ETHERNET = "truncated ethernet header"
    UNSUPPORTED_ETHERTYPE = "unsupported ether type"
    TRUNCATED_IP = "truncated ip header"
    INVALID_IP_HEADER_LENGTH = "invalid ip header length"
    TRUNCATED_TCP = "truncated tcp header"
    INVALID_TCP_HEADER_LENGTH = "invalid tcp header length"


def format_mac(raw: bytes) -> str:
    return ':'.join(f'{b:02x}' for b in raw)


@dataclass(frozen=True)
class EthernetHeader:
    """Fixed 14-byte Ethernet II header."""
    dst: bytes
    src: bytes
    ether_type: int

    @property
    def src_mac(self) -> str:
        return format_mac(self.src)

    @property
    def dst_mac(self) -> str:
        return format_mac(self.dst)


@dataclass(frozen=True)
class IPHeader:
    """IPv4 header fields used for aggregation.

    Addresses are kept as 32-bit integers in host order, so the top octet
    of ``10.1.2.3`` is ``src >> 24 == 10``.
    """
    version: int
    header_len: int
    total_len: int
    protocol: int
    src: int
    dst: int

    @property
    def src_octet(self) -> int:
        return (self.src >> 24) & 0xFF

    @property
    def dst_octet(self) -> int:
        return (self.dst >> 24) & 0xFF

    @property
    def src_ip(self) -> str:
        return socket.inet_ntoa(struct.pack('!I', self.src))

    @property
    def dst_ip(self) -> str:
        return socket.inet_ntoa(struct.pack('!I', self.dst))


@dataclass(frozen=True)
class TCPHeader:
    """TCP header fields used for aggregation."""
    sport: int
    dport: int
    header_len: int
    flags: int

    @property
    def flag_set(self) -> TCPFlags:
        return TCPFlags(self.flags)

    def has_flag(self, flag: TCPFlags) -> bool:
        return bool(self.flags & flag)


@dataclass(frozen=True)
class TcpPacket:
    """A dissected TCP/IPv4 frame."""
    ethernet: EthernetHeader
    ip: IPHeader
    tcp: TCPHeader
    payload_offset: int
    payload_len: int
    oversized: bool = False

    @property
    def frame_size(self) -> int:
        """Header-plus-payload size used for the snapshot bound."""
        return SIZE_ETHERNET + self.ip.header_len + self.payload_len


@dataclass(frozen=True)
class OtherIpPacket:
    """A dissected IPv4 frame carrying anything but TCP."""
    ethernet: EthernetHeader
    ip: IPHeader
    remaining_len: int

    @property
    def protocol(self) -> int:
        return self.ip.protocol

    @property
    def header_size(self) -> int:
        """Observable header-only size of the frame."""
        return SIZE_ETHERNET + self.ip.header_len


@dataclass(frozen=True)
class MalformedPacket:
    """A frame that failed dissection."""
    reason: MalformedReason
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.reason.value}: {self.detail}"
        return self.reason.value


DissectedPacket = Union[TcpPacket, OtherIpPacket, MalformedPacket]


def dissect(frame: bytes, caplen: int | None = None, snap_len: int = SNAP_LEN) -> DissectedPacket:
    """
    Dissect one captured Ethernet frame.

    Args:
        frame: Captured frame bytes
        caplen: Number of captured bytes (default: len(frame)). Bytes beyond
            min(caplen, len(frame)) are never read.
        snap_len: Snapshot length bounding the packet size histogram

    Returns:
        TcpPacket, OtherIpPacket or MalformedPacket
    """
    available = len(frame) if caplen is None else max(0, min(caplen, len(frame)))

    if available < SIZE_ETHERNET:
        return MalformedPacket(
            MalformedReason.TRUNCATED_ETHERNET,
            f"{available} of {SIZE_ETHERNET} bytes captured"
        )
    dst, src, ether_type = _ETHERNET.unpack_from(frame, 0)
    ethernet = EthernetHeader(dst=dst, src=src, ether_type=ether_type)
    if ether_type != ETHERTYPE_IPV4:
        return MalformedPacket(MalformedReason.UNSUPPORTED_ETHERTYPE, f"0x{ether_type:04x}")

    if available < SIZE_ETHERNET + MIN_IP_HEADER_LEN:
        return MalformedPacket(
            MalformedReason.TRUNCATED_IP,
            f"{available - SIZE_ETHERNET} of {MIN_IP_HEADER_LEN} bytes captured"
        )
    vhl, _tos, total_len, _id, _frag, _ttl, proto, _sum, ip_src, ip_dst = \
        _IPV4.unpack_from(frame, SIZE_ETHERNET)
    size_ip = (vhl & 0x0F) * 4
    if size_ip < MIN_IP_HEADER_LEN:
        return MalformedPacket(MalformedReason.INVALID_IP_HEADER_LENGTH, f"{size_ip} bytes")

    ip = IPHeader(
        version=vhl >> 4,
        header_len=size_ip,
        total_len=total_len,
        protocol=proto,
        src=ip_src,
        dst=ip_dst,
    )

    if proto != IPProtocol.TCP:
        return OtherIpPacket(
            ethernet=ethernet,
            ip=ip,
            remaining_len=max(0, available - SIZE_ETHERNET - size_ip),
        )

    tcp_offset = SIZE_ETHERNET + size_ip
    if available < tcp_offset + MIN_TCP_HEADER_LEN:
        return MalformedPacket(
            MalformedReason.TRUNCATED_TCP,
            f"{max(0, available - tcp_offset)} of {MIN_TCP_HEADER_LEN} bytes captured"
        )
    sport, dport, _seq, _ack, offx2, flags = _TCP.unpack_from(frame, tcp_offset)
    size_tcp = ((offx2 & 0xF0) >> 4) * 4
    if size_tcp < MIN_TCP_HEADER_LEN:
        return MalformedPacket(MalformedReason.INVALID_TCP_HEADER_LENGTH, f"{size_tcp} bytes")

    payload_len = total_len - (size_ip + size_tcp)
    oversized = payload_len < 0 or SIZE_ETHERNET + size_ip + payload_len >= snap_len

    return TcpPacket(
        ethernet=ethernet,
        ip=ip,
        tcp=TCPHeader(sport=sport, dport=dport, header_len=size_tcp, flags=flags),
        payload_offset=tcp_offset + size_tcp,
        payload_len=payload_len,
        oversized=oversized,
    )
