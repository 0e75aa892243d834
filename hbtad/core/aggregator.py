"""
Statistics aggregator - bounded histograms over dissected frames.

The aggregator is the only writer of its HistogramSet for the lifetime of one
capture session. Readers get a read-only snapshot once the session has been
finished; partial, in-progress state is never handed out.

Out-of-range policy (explicit rather than implied by array bounds):

    ports >= 1024          not tracked
    sizes >= snap_len      reported as OVERSIZED_PACKET, left out of packet_size
    unknown IP protocols   counted in the "ip" protocol slot
    non-IPv4 frames        counted as filtered, like an "ip" capture filter
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator

import numpy as np

from hbtad.core.dissector import (
    SNAP_LEN,
    IPProtocol,
    MalformedPacket,
    MalformedReason,
    OtherIpPacket,
    TcpPacket,
    DissectedPacket,
    dissect,
)
from hbtad.utils.logging import get_logger


ADDRESS_BUCKETS = 256
PORT_LIMIT = 1024
FLAG_COMBINATIONS = 256

PROTOCOL_NAMES = ('tcp', 'udp', 'icmp', 'ip')
_PROTOCOL_SLOTS = {
    IPProtocol.TCP: 0,
    IPProtocol.UDP: 1,
    IPProtocol.ICMP: 2,
    IPProtocol.IPIP: 3,
    IPProtocol.IP: 3,
}
OTHER_PROTOCOL_SLOT = 3

HISTOGRAM_NAMES = (
    'src_ip_octet',
    'dst_ip_octet',
    'src_port',
    'dst_port',
    'protocol',
    'packet_size',
    'tcp_flags',
)


def protocol_slot(protocol: int) -> int:
    """Map an IPv4 protocol number to its protocol histogram slot."""
    return _PROTOCOL_SLOTS.get(protocol, OTHER_PROTOCOL_SLOT)


def _zeros(size: int) -> np.ndarray:
    return np.zeros(size, dtype=np.int64)


@dataclass
class HistogramSet:
    """
    Bounded counter arrays for one capture session (or one entity).

    Attributes:
        snap_len: Size of the packet_size histogram
        src_ip_octet: Counts keyed by the top octet of the source address
        dst_ip_octet: Counts keyed by the top octet of the destination address
        src_port: TCP source port counts for ports below 1024
        dst_port: TCP destination port counts for ports below 1024
        protocol: Counts for tcp, udp, icmp, ip (in that order)
        packet_size: TCP payload sizes, or header sizes for non-TCP frames
        tcp_flags: Counts keyed by the raw TCP flags byte
    """

    snap_len: int = SNAP_LEN
    src_ip_octet: np.ndarray | None = None
    dst_ip_octet: np.ndarray | None = None
    src_port: np.ndarray | None = None
    dst_port: np.ndarray | None = None
    protocol: np.ndarray | None = None
    packet_size: np.ndarray | None = None
    tcp_flags: np.ndarray | None = None

    def __post_init__(self):
        if self.snap_len <= 0:
            raise ValueError(f"snap_len must be positive, got {self.snap_len}")
        sizes = {
            'src_ip_octet': ADDRESS_BUCKETS,
            'dst_ip_octet': ADDRESS_BUCKETS,
            'src_port': PORT_LIMIT,
            'dst_port': PORT_LIMIT,
            'protocol': len(PROTOCOL_NAMES),
            'packet_size': self.snap_len,
            'tcp_flags': FLAG_COMBINATIONS,
        }
        for name, size in sizes.items():
            arr = getattr(self, name)
            if arr is None:
                setattr(self, name, _zeros(size))
            elif len(arr) != size:
                raise ValueError(f"{name} must have {size} buckets, got {len(arr)}")

    def items(self) -> Iterator[tuple[str, np.ndarray]]:
        for name in HISTOGRAM_NAMES:
            yield name, getattr(self, name)

    @property
    def total_packets(self) -> int:
        """Number of non-malformed frames counted (one protocol slot each)."""
        return int(self.protocol.sum())

    def count_size(self, size: int) -> bool:
        """Increment packet_size[size] if in range. Returns False otherwise."""
        if 0 <= size < self.snap_len:
            self.packet_size[size] += 1
            return True
        return False

    def merge(self, other: HistogramSet) -> HistogramSet:
        """Add another set's counts into this one (element-wise)."""
        if other.snap_len != self.snap_len:
            raise ValueError(
                f"Cannot merge histograms with different snap_len: {self.snap_len} != {other.snap_len}"
            )
        for name, arr in other.items():
            getattr(self, name)[:] += arr
        return self

    def copy(self) -> HistogramSet:
        return HistogramSet(
            snap_len=self.snap_len,
            **{name: arr.copy() for name, arr in self.items()}
        )

    def snapshot(self) -> HistogramSet:
        """Return a copy whose arrays are read-only."""
        snap = self.copy()
        for _, arr in snap.items():
            arr.flags.writeable = False
        return snap

    def nonzero(self, name: str) -> list[tuple[int, int]]:
        """Return (bucket, count) pairs for the non-empty buckets of a histogram."""
        arr = getattr(self, name)
        return [(int(i), int(arr[i])) for i in np.flatnonzero(arr)]

    def to_dict(self) -> dict[str, list[int]]:
        return {name: arr.tolist() for name, arr in self.items()}


class EventKind(Enum):
    """Per-frame problems the aggregator reports."""
    MALFORMED_HEADER = "malformed_header"
    OVERSIZED_PACKET = "oversized_packet"


@dataclass(frozen=True)
class FrameEvent:
    """A reported per-frame problem. The frame itself is not retained."""
    index: int
    kind: EventKind
    reason: str
    size: int | None = None


class StatisticsAggregator:
    """
    Single writer of a session's histograms.

    Keeps one global HistogramSet plus one HistogramSet per source address
    top octet, so that per-entity feature vectors can be built after the
    session ends.

    Examples:
        >>> agg = StatisticsAggregator()
        >>> for buf in frames:
        ...     agg.on_frame(buf, len(buf))
        >>> histograms = agg.finish()
        >>> print(histograms.protocol, agg.malformed_count)

    Args:
        snap_len: Snapshot length; bounds the packet_size histogram
        track_entities: Keep per-source-octet histograms (default: True)
    """

    def __init__(self, snap_len: int = SNAP_LEN, track_entities: bool = True):
        self.snap_len = snap_len
        self.track_entities = track_entities
        self._histograms = HistogramSet(snap_len=snap_len)
        self._entities: dict[int, HistogramSet] = {}
        self._finished = False
        self.events: list[FrameEvent] = []
        self.unknown_protocols: Counter[int] = Counter()
        self._stats = {
            'frames_seen': 0,
            'frames_recorded': 0,
            'malformed': 0,
            'oversized': 0,
            'filtered': 0,
        }
        self._logger = get_logger(__name__)

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    @property
    def malformed_count(self) -> int:
        return self._stats['malformed']

    @property
    def oversized_count(self) -> int:
        return self._stats['oversized']

    def on_frame(self, buffer: bytes, caplen: int | None = None) -> DissectedPacket:
        """Capture callback: dissect one frame and record it."""
        packet = dissect(buffer, caplen, self.snap_len)
        self.record(packet)
        return packet

    def process(self, frames: Iterable[tuple[bytes, int]]) -> int:
        """Feed (buffer, caplen) pairs through on_frame. Returns the number fed."""
        count = 0
        for buffer, caplen in frames:
            self.on_frame(buffer, caplen)
            count += 1
        return count

    def record(self, packet: DissectedPacket) -> None:
        """Update histograms from one dissected frame."""
        if self._finished:
            raise RuntimeError("Session already finished; start a new aggregator")

        index = self._stats['frames_seen']
        self._stats['frames_seen'] += 1

        if isinstance(packet, MalformedPacket):
            if packet.reason is MalformedReason.UNSUPPORTED_ETHERTYPE:
                self._stats['filtered'] += 1
                return
            self._report(index, EventKind.MALFORMED_HEADER, str(packet))
            return

        if isinstance(packet, TcpPacket):
            size = None if packet.oversized else packet.payload_len
            if size is None:
                self._report(index, EventKind.OVERSIZED_PACKET,
                             f"payload {packet.payload_len} bytes", packet.frame_size)
        elif isinstance(packet, OtherIpPacket):
            size = packet.header_size
            if size >= self.snap_len:
                self._report(index, EventKind.OVERSIZED_PACKET,
                             f"header {size} bytes", size)
                size = None
            if packet.protocol not in _PROTOCOL_SLOTS:
                self.unknown_protocols[packet.protocol] += 1
        else:
            raise TypeError(f"Unexpected packet type: {type(packet).__name__}")

        self._update(self._histograms, packet, size)
        if self.track_entities:
            entity = packet.ip.src_octet
            if entity not in self._entities:
                self._entities[entity] = HistogramSet(snap_len=self.snap_len)
            self._update(self._entities[entity], packet, size)

        self._stats['frames_recorded'] += 1

    @staticmethod
    def _update(hs: HistogramSet, packet: TcpPacket | OtherIpPacket, size: int | None) -> None:
        hs.src_ip_octet[packet.ip.src_octet] += 1
        hs.dst_ip_octet[packet.ip.dst_octet] += 1
        hs.protocol[protocol_slot(packet.ip.protocol)] += 1

        if isinstance(packet, TcpPacket):
            hs.tcp_flags[packet.tcp.flags] += 1
            if packet.tcp.sport < PORT_LIMIT:
                hs.src_port[packet.tcp.sport] += 1
            if packet.tcp.dport < PORT_LIMIT:
                hs.dst_port[packet.tcp.dport] += 1

        if size is not None:
            hs.count_size(size)

    def _report(self, index: int, kind: EventKind, reason: str, size: int | None = None) -> None:
        if kind is EventKind.MALFORMED_HEADER:
            self._stats['malformed'] += 1
        else:
            self._stats['oversized'] += 1
        self.events.append(FrameEvent(index=index, kind=kind, reason=reason, size=size))
        self._logger.debug(kind.value, frame=index, reason=reason, size=size)

    def events_of(self, kind: EventKind) -> list[FrameEvent]:
        return [e for e in self.events if e.kind is kind]

    def finish(self) -> HistogramSet:
        """End the session and return a read-only snapshot of the histograms."""
        if not self._finished:
            self._finished = True
            self._logger.info(
                "session_finished",
                entities=len(self._entities),
                **self._stats,
            )
        return self._histograms.snapshot()

    def snapshot(self) -> HistogramSet:
        """Read-only histograms; only available once the session is finished."""
        if not self._finished:
            raise RuntimeError("Histograms are only readable after finish()")
        return self._histograms.snapshot()

    def entity_snapshots(self) -> dict[int, HistogramSet]:
        """Read-only per-source-octet histograms, ordered by octet."""
        if not self._finished:
            raise RuntimeError("Histograms are only readable after finish()")
        return {key: self._entities[key].snapshot() for key in sorted(self._entities)}
