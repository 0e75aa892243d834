"""
PcapReader - offline capture replay.

Reads pcap/pcapng files with dpkt and delivers each frame's bytes together
with its captured length. Only Ethernet captures are accepted.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterator


# DLT (Data Link Type) constants
DLT_NULL = 0
DLT_EN10MB = 1
DLT_RAW = 101
DLT_LINUX_SLL = 113

LINK_TYPE_NAMES = {
    DLT_NULL: "BSD loopback",
    DLT_EN10MB: "Ethernet",
    DLT_RAW: "raw IP",
    DLT_LINUX_SLL: "Linux cooked",
}

_PCAP_MAGICS = (
    b'\xd4\xc3\xb2\xa1',  # pcap, little endian
    b'\xa1\xb2\xc3\xd4',  # pcap, big endian
    b'\x4d\x3c\xb2\xa1',  # pcap nanosecond, little endian
    b'\xa1\xb2\x3c\x4d',  # pcap nanosecond, big endian
    b'\x0a\x0d\x0d\x0a',  # pcapng
)


class PcapReader:
    """
    PCAP file reader for Ethernet captures.

    Examples:
        >>> with PcapReader('traffic.pcap') as reader:
        ...     for ts, caplen, wirelen, buf in reader.packets():
        ...         aggregator.on_frame(buf, caplen)
    """

    def __init__(self, pcap_path: str | Path):
        self.pcap_path = Path(pcap_path)
        self._reader: Any | None = None
        self._file = None
        self._link_layer_type: int | None = None

    def open(self) -> None:
        """Open the PCAP file and initialize reader."""
        import dpkt

        if not self.pcap_path.exists():
            raise FileNotFoundError(f"PCAP file not found: {self.pcap_path}")

        f = open(self.pcap_path, 'rb')
        try:
            self._reader = dpkt.pcap.UniversalReader(f)
            self._link_layer_type = self._reader.datalink()
        except ValueError as e:
            f.close()
            raise ValueError(f"Unknown PCAP format: {e}")

        if self._link_layer_type != DLT_EN10MB:
            f.close()
            self._reader = None
            raise ValueError(
                f"{self.pcap_path} is not an Ethernet capture (link type {self._link_layer_type}, "
                f"{LINK_TYPE_NAMES.get(self._link_layer_type, 'unknown')})"
            )
        self._file = f

    def close(self) -> None:
        """Close the PCAP file."""
        self._reader = None
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> PcapReader:
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def link_layer_type(self) -> int:
        """Get the DLT link layer type."""
        if self._link_layer_type is None:
            raise RuntimeError("Reader not opened")
        return self._link_layer_type

    @property
    def snaplen(self) -> int | None:
        """Snapshot length recorded in the file header, if the format has one."""
        if self._reader is None:
            raise RuntimeError("Reader not opened")
        return getattr(self._reader, 'snaplen', None)

    def __iter__(self) -> Iterator[tuple[float, bytes]]:
        """Iterate over (timestamp, buffer) pairs."""
        if self._reader is None:
            raise RuntimeError("Reader not opened. Call open() first.")

        for ts, buf in self._reader:
            yield ts, buf

    def packets(self) -> Iterator[tuple[float, int, int, bytes]]:
        """
        Iterate over packets with length metadata.

        dpkt hands back only the captured bytes, so caplen is the buffer
        length; wirelen is reported the same way.

        Yields:
            (timestamp, caplen, wirelen, packet_data)
        """
        for ts, buf in self:
            caplen = len(buf)
            yield ts, caplen, caplen, buf

    def read_packets(self, callback: Callable[[bytes, int], Any], limit: int | None = None) -> int:
        """
        Deliver each frame to ``callback(buffer, caplen)``.

        Args:
            callback: Per-frame callback, typically StatisticsAggregator.on_frame
            limit: Maximum number of packets to read (default: whole file)

        Returns:
            Number of packets read
        """
        count = 0
        for _, caplen, _, buf in self.packets():
            callback(buf, caplen)
            count += 1
            if limit and count >= limit:
                break
        return count

    @staticmethod
    def is_pcap_file(path: str | Path) -> bool:
        """Check if file is a valid PCAP or PCAPNG file."""
        path = Path(path)
        if not path.exists() or not path.is_file():
            return False

        try:
            with open(path, 'rb') as f:
                magic = f.read(4)
        except OSError:
            return False
        return magic in _PCAP_MAGICS
