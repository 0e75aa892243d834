"""
HistogramAnalyzer - capture session pipeline.

Combines the dissector, aggregator, feature builder and clustering engine:

    capture -> on_frame (dissect + record) -> finish -> build_vectors -> k-means

A fresh aggregator is used for every session, and clustering only ever sees
histograms from a finished session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from hbtad.clustering.kmeans import DEFAULT_MAX_ITERATIONS, ClusterAssignment, KMeans
from hbtad.core.aggregator import EventKind, FrameEvent, HistogramSet, StatisticsAggregator
from hbtad.core.capture import LiveCapture
from hbtad.core.dissector import SNAP_LEN
from hbtad.core.reader import PcapReader
from hbtad.features.vectors import FeatureLayout, FeatureVectors, build_vectors
from hbtad.utils.logging import get_logger


DEFAULT_CLUSTERS = 2


@dataclass
class AnalysisResult:
    """
    Everything a reporting layer needs after a session.

    Attributes:
        histograms: Session-wide read-only histograms
        entities: Read-only histograms per source address top octet
        vectors: Feature vectors, one per entity
        assignment: Cluster labels indexed like ``vectors``; None when there
            were fewer entities than clusters
        events: Per-frame malformed/oversized reports
        stats: Session counters (frames_seen, frames_recorded, ...)
    """
    histograms: HistogramSet
    entities: dict[int, HistogramSet] = field(default_factory=dict)
    vectors: FeatureVectors = field(default_factory=FeatureVectors)
    assignment: ClusterAssignment | None = None
    events: list[FrameEvent] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)

    @property
    def malformed_count(self) -> int:
        return sum(1 for e in self.events if e.kind is EventKind.MALFORMED_HEADER)

    @property
    def oversized_count(self) -> int:
        return sum(1 for e in self.events if e.kind is EventKind.OVERSIZED_PACKET)

    def labels_by_entity(self) -> dict[int, int]:
        """Map entity key (source octet) -> cluster id."""
        if self.assignment is None:
            return {}
        return {key: self.assignment[i] for i, key in enumerate(self.vectors.keys)}


class HistogramAnalyzer:
    """
    Main entry point for histogram-based traffic analysis.

    Examples:
        Offline replay:
            >>> analyzer = HistogramAnalyzer(k=3)
            >>> result = analyzer.analyze_file('traffic.pcap')
            >>> print(result.histograms.protocol)
            >>> print(result.labels_by_entity())

        Raw frames from any source:
            >>> result = analyzer.analyze_frames((buf, len(buf)) for buf in frames)

    Args:
        snap_len: Snapshot length bounding the packet size histogram (default: 1518)
        k: Number of clusters (default: 2)
        max_iterations: k-means iteration bound (default: 100)
        layout: Feature vector layout (default: FeatureLayout())
        cluster: Run clustering after the capture (default: True)
    """

    def __init__(
        self,
        snap_len: int = SNAP_LEN,
        k: int = DEFAULT_CLUSTERS,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        layout: FeatureLayout | None = None,
        cluster: bool = True,
    ):
        if snap_len <= 0:
            raise ValueError(f"snap_len must be positive, got {snap_len}")
        self.snap_len = snap_len
        self.k = k
        self.max_iterations = max_iterations
        self.layout = layout or FeatureLayout()
        self.cluster = cluster
        self._engine = KMeans(k, max_iterations=max_iterations)
        self._logger = get_logger(__name__)

    def new_session(self) -> StatisticsAggregator:
        return StatisticsAggregator(snap_len=self.snap_len)

    def analyze_file(self, pcap_path: str | Path) -> AnalysisResult:
        """Replay a whole pcap/pcapng file."""
        pcap_path = Path(pcap_path)
        if not pcap_path.exists():
            raise FileNotFoundError(f"PCAP file not found: {pcap_path}")

        aggregator = self.new_session()
        with PcapReader(pcap_path) as reader:
            count = reader.read_packets(aggregator.on_frame)
        self._logger.info("file_replayed", path=str(pcap_path), frames=count)
        return self.complete(aggregator)

    def analyze_live(
        self,
        interface: str | None = None,
        count: int = 10,
        timeout: float | None = None,
    ) -> AnalysisResult:
        """Capture from an interface until the count or timeout is reached."""
        aggregator = self.new_session()
        capture = LiveCapture(interface, count=count, timeout=timeout, snap_len=self.snap_len)
        capture.run(aggregator.on_frame)
        return self.complete(aggregator)

    def analyze_frames(self, frames: Iterable[tuple[bytes, int]]) -> AnalysisResult:
        """Process (buffer, caplen) pairs from any capture source."""
        aggregator = self.new_session()
        aggregator.process(frames)
        return self.complete(aggregator)

    def complete(self, aggregator: StatisticsAggregator) -> AnalysisResult:
        """Finish a session and derive vectors and cluster labels from it."""
        histograms = aggregator.finish()
        entities = aggregator.entity_snapshots()
        vectors = build_vectors(entities, self.layout)

        assignment = None
        if self.cluster:
            if len(vectors) >= self.k:
                assignment = self._engine.fit(vectors.matrix)
            else:
                self._logger.warning("clustering_skipped", entities=len(vectors), k=self.k)

        return AnalysisResult(
            histograms=histograms,
            entities=entities,
            vectors=vectors,
            assignment=assignment,
            events=list(aggregator.events),
            stats=aggregator.stats,
        )
