"""
Feature vector construction from per-entity histograms.

Each entity (by default, a source address top octet) becomes one fixed-length
vector. The layout is:

    proto.{tcp,udp,icmp,ip}      protocol histogram
    flag.{fin,...,cwr}           packets with each TCP flag bit set
    sport.<lo>-<hi>              source port bins over [0, 1024)
    dport.<lo>-<hi>              destination port bins over [0, 1024)
    size.<lo>-<hi>               packet size bins over [0, snap_len)
    dst_octets                   number of distinct destination top octets
    packets                      number of frames counted for the entity

With ``normalize`` enabled the count groups are divided by the entity's packet
count so that busy and quiet hosts with the same mix look alike.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping

import numpy as np

from hbtad.core.aggregator import FLAG_COMBINATIONS, PORT_LIMIT, PROTOCOL_NAMES, HistogramSet
from hbtad.core.dissector import TCPFlags


_FLAG_MASKS = np.array(
    [[(value & flag) != 0 for value in range(FLAG_COMBINATIONS)] for flag in TCPFlags],
    dtype=np.int64,
)


def _bin_edges(limit: int, width: int) -> np.ndarray:
    return np.arange(0, limit, width)


def _binned(arr: np.ndarray, width: int) -> np.ndarray:
    return np.add.reduceat(arr, _bin_edges(len(arr), width))


@dataclass(frozen=True)
class FeatureLayout:
    """
    Dimension layout of entity feature vectors.

    Attributes:
        port_bin_width: Ports per bin (default 64, giving 16 bins)
        size_bin_width: Bytes per packet size bin (default 128)
        normalize: Scale count groups by the entity packet count
    """
    port_bin_width: int = 64
    size_bin_width: int = 128
    normalize: bool = True

    def __post_init__(self):
        if self.port_bin_width <= 0 or self.size_bin_width <= 0:
            raise ValueError("Bin widths must be positive")

    def columns(self, snap_len: int) -> list[str]:
        cols = [f'proto.{name}' for name in PROTOCOL_NAMES]
        cols += [f'flag.{flag.name.lower()}' for flag in TCPFlags]
        for prefix in ('sport', 'dport'):
            cols += [
                f'{prefix}.{lo}-{min(lo + self.port_bin_width, PORT_LIMIT) - 1}'
                for lo in _bin_edges(PORT_LIMIT, self.port_bin_width)
            ]
        cols += [
            f'size.{lo}-{min(lo + self.size_bin_width, snap_len) - 1}'
            for lo in _bin_edges(snap_len, self.size_bin_width)
        ]
        cols += ['dst_octets', 'packets']
        return cols

    def dimensions(self, snap_len: int) -> int:
        return len(self.columns(snap_len))

    def project(self, hs: HistogramSet) -> np.ndarray:
        """Reduce one entity's histograms to a vector."""
        packets = hs.total_packets
        counts = np.concatenate([
            hs.protocol,
            _FLAG_MASKS @ hs.tcp_flags,
            _binned(hs.src_port, self.port_bin_width),
            _binned(hs.dst_port, self.port_bin_width),
            _binned(hs.packet_size, self.size_bin_width),
        ]).astype(np.float64)
        if self.normalize and packets > 0:
            counts /= packets
        extra = np.array([np.count_nonzero(hs.dst_ip_octet), packets], dtype=np.float64)
        return np.concatenate([counts, extra])


@dataclass
class FeatureVectors:
    """
    Feature vectors for one clustering run.

    Row ``i`` of ``matrix`` belongs to ``keys[i]``; cluster assignments are
    reported against the same index space.
    """
    keys: list[int] = field(default_factory=list)
    matrix: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))
    columns: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.keys)

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.matrix)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.matrix[index]

    def index_of(self, key: int) -> int:
        return self.keys.index(key)

    def to_dict(self) -> dict[int, dict[str, float]]:
        return {
            key: dict(zip(self.columns, row.tolist()))
            for key, row in zip(self.keys, self.matrix)
        }


def build_vectors(
    histograms: Mapping[int, HistogramSet] | HistogramSet,
    layout: FeatureLayout | None = None,
) -> FeatureVectors:
    """
    Project histograms into feature vectors, one per entity.

    Args:
        histograms: Per-entity histograms keyed by entity id, or a single
            HistogramSet (treated as entity 0)
        layout: Dimension layout (default: FeatureLayout())

    Returns:
        FeatureVectors ordered by ascending entity key. Entities with no
        counted packets are skipped.
    """
    layout = layout or FeatureLayout()
    if isinstance(histograms, HistogramSet):
        histograms = {0: histograms}

    snap_lens = {hs.snap_len for hs in histograms.values()}
    if len(snap_lens) > 1:
        raise ValueError(f"Histograms use different snap lengths: {sorted(snap_lens)}")
    snap_len = snap_lens.pop() if snap_lens else HistogramSet().snap_len
    columns = layout.columns(snap_len)

    keys = [key for key in sorted(histograms) if histograms[key].total_packets > 0]
    if not keys:
        return FeatureVectors(keys=[], matrix=np.empty((0, len(columns))), columns=columns)

    matrix = np.vstack([layout.project(histograms[key]) for key in keys])
    matrix.flags.writeable = False
    return FeatureVectors(keys=keys, matrix=matrix, columns=columns)
