"""Test LiveCapture with a stubbed sniffer."""

import pytest

from hbtad import HistogramAnalyzer
from hbtad.core.capture import LiveCapture
from conftest import tcp_frame, icmp_frame


@pytest.fixture
def fake_sniff(monkeypatch):
    """Replace scapy's sniff with one that replays canned frames."""
    scapy_all = pytest.importorskip("scapy.all")
    calls = {}

    def sniff(**kwargs):
        calls.update(kwargs)
        frames = [tcp_frame(src='10.1.2.3', dport=80), icmp_frame(), tcp_frame(payload=b'x' * 2000)]
        limit = kwargs.get('count') or len(frames)
        for frame in frames[:limit]:
            kwargs['prn'](frame)

    monkeypatch.setattr(scapy_all, 'sniff', sniff)
    return calls


def test_requires_count_or_timeout():
    with pytest.raises(ValueError):
        LiveCapture('eth0', count=0)


def test_run_delivers_frames(fake_sniff):
    seen = []
    capture = LiveCapture('eth0', count=2, timeout=5)
    assert capture.run(lambda buf, caplen: seen.append(caplen)) == 2

    assert fake_sniff['iface'] == 'eth0'
    assert fake_sniff['count'] == 2
    assert fake_sniff['timeout'] == 5
    assert fake_sniff['filter'] == 'ip'
    assert fake_sniff['store'] is False
    assert len(seen) == 2


def test_frames_truncated_to_snap_len(fake_sniff):
    seen = []
    LiveCapture(count=3, snap_len=100).run(lambda buf, caplen: seen.append((len(buf), caplen)))
    assert seen[2] == (100, 100)
    assert 'iface' not in fake_sniff


def test_analyze_live(fake_sniff):
    result = HistogramAnalyzer(cluster=False).analyze_live('eth0', count=2)
    assert result.histograms.protocol.tolist() == [1, 0, 1, 0]
    assert result.histograms.dst_port[80] == 1
