"""Core hbtad modules."""

from hbtad.core.analyzer import HistogramAnalyzer, AnalysisResult
from hbtad.core.aggregator import StatisticsAggregator, HistogramSet, FrameEvent, EventKind
from hbtad.core.dissector import (
    dissect,
    EthernetHeader,
    IPHeader,
    TCPHeader,
    TcpPacket,
    OtherIpPacket,
    MalformedPacket,
    MalformedReason,
    IPProtocol,
    TCPFlags,
)
from hbtad.core.reader import PcapReader
from hbtad.core.capture import LiveCapture

__all__ = [
    'HistogramAnalyzer',
    'AnalysisResult',
    'StatisticsAggregator',
    'HistogramSet',
    'FrameEvent',
    'EventKind',
    'dissect',
    'EthernetHeader',
    'IPHeader',
    'TCPHeader',
    'TcpPacket',
    'OtherIpPacket',
    'MalformedPacket',
    'MalformedReason',
    'IPProtocol',
    'TCPFlags',
    'PcapReader',
    'LiveCapture',
]
