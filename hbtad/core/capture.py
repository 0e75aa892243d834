"""
LiveCapture - frames from a network interface via scapy.

Live capture is bounded by a packet count and/or a timeout; each frame is
handed to the callback as raw bytes with its captured length.
"""

from __future__ import annotations

from typing import Any, Callable

from hbtad.core.dissector import SNAP_LEN
from hbtad.utils.logging import get_logger


# Only IPv4 frames are of interest to the dissector
DEFAULT_FILTER = "ip"
DEFAULT_COUNT = 10


class LiveCapture:
    """
    Capture frames from an interface.

    Examples:
        >>> capture = LiveCapture('eth0', count=100)
        >>> capture.run(aggregator.on_frame)

    Args:
        interface: Interface name (default: scapy's default interface)
        count: Number of packets to capture; 0 means until timeout
        timeout: Seconds to capture for (default: no limit)
        snap_len: Bytes of each frame handed to the callback
        bpf_filter: Capture filter expression (default: "ip")
    """

    def __init__(
        self,
        interface: str | None = None,
        count: int = DEFAULT_COUNT,
        timeout: float | None = None,
        snap_len: int = SNAP_LEN,
        bpf_filter: str | None = DEFAULT_FILTER,
    ):
        if count <= 0 and timeout is None:
            raise ValueError("Live capture needs a packet count or a timeout")
        self.interface = interface
        self.count = count
        self.timeout = timeout
        self.snap_len = snap_len
        self.bpf_filter = bpf_filter
        self.frames_delivered = 0
        self._logger = get_logger(__name__)

    def _deliver(self, callback: Callable[[bytes, int], Any]) -> Callable[[Any], None]:
        def handle(pkt) -> None:
            buf = bytes(pkt)[:self.snap_len]
            callback(buf, len(buf))
            self.frames_delivered += 1
        return handle

    def run(self, callback: Callable[[bytes, int], Any]) -> int:
        """
        Capture until the count or timeout is reached.

        Returns:
            Number of frames delivered to ``callback``
        """
        from scapy.all import sniff

        self._logger.info("capture_start", interface=self.interface, count=self.count,
                          timeout=self.timeout, filter=self.bpf_filter)
        kwargs: dict[str, Any] = {
            'prn': self._deliver(callback),
            'store': False,
            'count': self.count,
        }
        if self.interface:
            kwargs['iface'] = self.interface
        if self.timeout is not None:
            kwargs['timeout'] = self.timeout
        if self.bpf_filter:
            kwargs['filter'] = self.bpf_filter
        sniff(**kwargs)
        self._logger.info("capture_complete", frames=self.frames_delivered)
        return self.frames_delivered
