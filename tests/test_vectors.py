"""Test feature vector construction."""

import numpy as np
import pytest

from hbtad.core.aggregator import HistogramSet, StatisticsAggregator
from hbtad.features.vectors import FeatureLayout, FeatureVectors, build_vectors
from conftest import tcp_frame, udp_frame, icmp_frame


def _entities(frames):
    agg = StatisticsAggregator()
    for frame in frames:
        agg.on_frame(frame)
    agg.finish()
    return agg.entity_snapshots()


def test_default_layout_columns():
    layout = FeatureLayout()
    cols = layout.columns(1518)

    assert cols[:4] == ['proto.tcp', 'proto.udp', 'proto.icmp', 'proto.ip']
    assert cols[4:12] == ['flag.fin', 'flag.syn', 'flag.rst', 'flag.push',
                          'flag.ack', 'flag.urg', 'flag.ece', 'flag.cwr']
    assert cols[12] == 'sport.0-63'
    assert cols[27] == 'sport.960-1023'
    assert cols[28] == 'dport.0-63'
    assert cols[44] == 'size.0-127'
    assert cols[-3] == 'size.1408-1517'
    assert cols[-2:] == ['dst_octets', 'packets']
    assert layout.dimensions(1518) == 4 + 8 + 16 + 16 + 12 + 2


def test_invalid_layout():
    with pytest.raises(ValueError):
        FeatureLayout(port_bin_width=0)


def test_one_vector_per_populated_entity():
    """Test vectors are ordered by entity key and skip empty entities."""
    entities = _entities([
        udp_frame(src='192.168.1.10'),
        tcp_frame(src='10.0.0.1', dport=80),
        tcp_frame(src='10.0.0.2', dport=80),
    ])
    entities[50] = HistogramSet()
    vectors = build_vectors(entities)

    assert vectors.keys == [10, 192]
    assert vectors.matrix.shape == (2, FeatureLayout().dimensions(1518))
    assert len(vectors) == 2
    assert vectors.index_of(192) == 1


def test_raw_counts_projection():
    entities = _entities([
        tcp_frame(src='10.0.0.1', dst='1.1.1.1', sport=22, dport=80, flags=0x12, payload=b'x' * 200),
        tcp_frame(src='10.0.0.1', dst='2.2.2.2', sport=50000, dport=443, flags=0x10),
        icmp_frame(src='10.0.0.1', dst='1.1.1.1'),
    ])
    layout = FeatureLayout(normalize=False)
    vectors = build_vectors(entities, layout)
    row = dict(zip(vectors.columns, vectors[0].tolist()))

    assert row['proto.tcp'] == 2
    assert row['proto.icmp'] == 1
    assert row['flag.syn'] == 1
    assert row['flag.ack'] == 2
    assert row['flag.fin'] == 0
    assert row['sport.0-63'] == 1
    assert row['dport.64-127'] == 1
    assert row['dport.384-447'] == 1
    # 200-byte payload, a 0-byte payload and a 34-byte ICMP header size
    assert row['size.128-255'] == 1
    assert row['size.0-127'] == 2
    assert row['dst_octets'] == 2
    assert row['packets'] == 3


def test_normalized_projection():
    entities = _entities([
        tcp_frame(src='10.0.0.1', dport=80),
        icmp_frame(src='10.0.0.1'),
    ])
    vectors = build_vectors(entities)
    row = dict(zip(vectors.columns, vectors[0].tolist()))

    assert row['proto.tcp'] == pytest.approx(0.5)
    assert row['proto.icmp'] == pytest.approx(0.5)
    assert row['packets'] == 2


def test_single_histogram_set_is_one_entity():
    agg = StatisticsAggregator()
    agg.on_frame(tcp_frame())
    vectors = build_vectors(agg.finish())
    assert vectors.keys == [0]
    assert vectors.matrix.shape[0] == 1


def test_empty_input():
    vectors = build_vectors({})
    assert len(vectors) == 0
    assert vectors.matrix.shape == (0, FeatureLayout().dimensions(1518))


def test_vectors_are_immutable():
    vectors = build_vectors(_entities([tcp_frame()]))
    with pytest.raises(ValueError):
        vectors.matrix[0, 0] = 5.0


def test_mixed_snap_lengths_rejected():
    with pytest.raises(ValueError):
        build_vectors({1: HistogramSet(snap_len=100), 2: HistogramSet(snap_len=200)})


def test_custom_bins():
    hs = HistogramSet(snap_len=100)
    hs.protocol[0] = 1
    hs.dst_port[1000] = 1
    hs.packet_size[99] = 1
    layout = FeatureLayout(port_bin_width=512, size_bin_width=60, normalize=False)
    vectors = build_vectors({7: hs}, layout)

    row = dict(zip(vectors.columns, vectors[0].tolist()))
    assert row['dport.512-1023'] == 1
    assert row['size.60-99'] == 1
    assert len(vectors.columns) == 4 + 8 + 2 + 2 + 2 + 2


def test_to_dict():
    vectors = FeatureVectors(keys=[3], matrix=np.array([[1.0, 2.0]]), columns=['a', 'b'])
    assert vectors.to_dict() == {3: {'a': 1.0, 'b': 2.0}}
