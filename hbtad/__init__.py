"""
hbtad - Histogram-based traffic anomaly detection

Dissects captured Ethernet/IPv4/TCP frames, accumulates bounded histograms
over addresses, ports, protocols, sizes and TCP flags, and clusters
per-source feature vectors with k-means.

Example usage:
    from hbtad import HistogramAnalyzer

    analyzer = HistogramAnalyzer(k=3)
    result = analyzer.analyze_file('traffic.pcap')

    print(f"Protocols: {result.histograms.protocol.tolist()}")
    print(f"Malformed frames: {result.malformed_count}")

    for entity, label in result.labels_by_entity().items():
        print(f"  {entity}.x.x.x -> cluster {label}")
"""

from hbtad.core.analyzer import HistogramAnalyzer, AnalysisResult
from hbtad.core.aggregator import StatisticsAggregator, HistogramSet, FrameEvent, EventKind
from hbtad.core.dissector import (
    dissect,
    TcpPacket,
    OtherIpPacket,
    MalformedPacket,
    MalformedReason,
    SNAP_LEN,
    SIZE_ETHERNET,
)
from hbtad.core.reader import PcapReader
from hbtad.core.capture import LiveCapture
from hbtad.features.vectors import FeatureLayout, FeatureVectors, build_vectors
from hbtad.clustering.distance import distance, normalized_euclidean
from hbtad.clustering.kmeans import KMeans, KMeansState, ClusterAssignment, cluster
from hbtad.errors import HbtadError, DimensionMismatch, InsufficientSamples, NonConvergence
from hbtad.exporters import (
    histograms_to_dataframe,
    vectors_to_dataframe,
    assignment_to_dataframe,
    to_dict,
    to_json,
    to_csv,
    ResultExporter,
)

__version__ = "0.1.0"

__all__ = [
    # Main class
    'HistogramAnalyzer',
    'AnalysisResult',

    # Dissection and aggregation
    'dissect',
    'TcpPacket',
    'OtherIpPacket',
    'MalformedPacket',
    'MalformedReason',
    'SNAP_LEN',
    'SIZE_ETHERNET',
    'StatisticsAggregator',
    'HistogramSet',
    'FrameEvent',
    'EventKind',

    # Capture sources
    'PcapReader',
    'LiveCapture',

    # Features and clustering
    'FeatureLayout',
    'FeatureVectors',
    'build_vectors',
    'distance',
    'normalized_euclidean',
    'KMeans',
    'KMeansState',
    'ClusterAssignment',
    'cluster',

    # Errors
    'HbtadError',
    'DimensionMismatch',
    'InsufficientSamples',
    'NonConvergence',

    # Exporters
    'histograms_to_dataframe',
    'vectors_to_dataframe',
    'assignment_to_dataframe',
    'to_dict',
    'to_json',
    'to_csv',
    'ResultExporter',
]
