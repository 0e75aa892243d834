"""
Command line interface.

    hbtad capture.pcap                 replay a capture file
    hbtad --live eth0 --count 100      capture from an interface
"""

from __future__ import annotations

import argparse
import sys
from typing import TextIO

from hbtad.clustering.kmeans import DEFAULT_MAX_ITERATIONS
from hbtad.core.analyzer import DEFAULT_CLUSTERS, AnalysisResult, HistogramAnalyzer
from hbtad.core.dissector import SNAP_LEN
from hbtad.exporters import ResultExporter
from hbtad.utils.logging import configure_logging


APP_NAME = "hbtad"
APP_DESC = "Histogram-based traffic anomaly detection"

# Report labels, in the order the histograms are printed
REPORT_LABELS = (
    ('src_ip_octet', 'saddr'),
    ('dst_ip_octet', 'daddr'),
    ('src_port', 'sport'),
    ('dst_port', 'dport'),
    ('protocol', 'protocol'),
    ('packet_size', 'packet size'),
    ('tcp_flags', 'flags'),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description=APP_DESC)
    parser.add_argument('file', nargs='?', help='Capture file (pcap or pcapng) to replay')
    parser.add_argument('--live', metavar='IFACE', help='Capture from a network interface instead')
    parser.add_argument('--count', type=int, default=10, help='Packets to capture in live mode (default: 10)')
    parser.add_argument('--timeout', type=float, default=None, help='Seconds to capture in live mode')
    parser.add_argument('-k', '--clusters', type=int, default=DEFAULT_CLUSTERS,
                        help=f'Number of clusters (default: {DEFAULT_CLUSTERS})')
    parser.add_argument('--max-iterations', type=int, default=DEFAULT_MAX_ITERATIONS,
                        help=f'k-means iteration bound (default: {DEFAULT_MAX_ITERATIONS})')
    parser.add_argument('--snaplen', type=int, default=SNAP_LEN,
                        help=f'Snapshot length (default: {SNAP_LEN})')
    parser.add_argument('-o', '--output', help='Write the result to a .json or .csv file')
    parser.add_argument('--all-buckets', action='store_true', help='Print empty histogram buckets too')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Log progress (-v) or per-frame events (-vv) to stderr')
    return parser


def print_report(result: AnalysisResult, out: TextIO, all_buckets: bool = False) -> None:
    hs = result.histograms
    for name, label in REPORT_LABELS:
        arr = getattr(hs, name)
        buckets = enumerate(arr.tolist()) if all_buckets else hs.nonzero(name)
        for bucket, count in buckets:
            out.write(f"{label}: {bucket}\t count: {count}\n")

    out.write(f"\nFrames: {result.stats.get('frames_seen', 0)}"
              f"  recorded: {result.stats.get('frames_recorded', 0)}"
              f"  malformed: {result.malformed_count}"
              f"  oversized: {result.oversized_count}"
              f"  filtered: {result.stats.get('filtered', 0)}\n")

    if result.assignment is None:
        out.write(f"Clustering skipped: {len(result.vectors)} entities\n")
        return

    a = result.assignment
    status = "converged" if a.converged else "not converged"
    out.write(f"Clusters: k={a.k}, {a.iterations} iterations, {status}\n")
    for entity, label in result.labels_by_entity().items():
        out.write(f"saddr: {entity}\t cluster: {label}\n")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if bool(args.file) == bool(args.live):
        parser.print_usage(sys.stderr)
        print(f"{APP_NAME}: error: give either a capture file or --live IFACE", file=sys.stderr)
        return 2
    if args.live and args.count <= 0 and args.timeout is None:
        parser.print_usage(sys.stderr)
        print(f"{APP_NAME}: error: --live needs a positive --count or a --timeout", file=sys.stderr)
        return 2

    levels = {0: "WARNING", 1: "INFO"}
    configure_logging(levels.get(args.verbose, "DEBUG"))

    try:
        analyzer = HistogramAnalyzer(
            snap_len=args.snaplen,
            k=args.clusters,
            max_iterations=args.max_iterations,
        )
    except ValueError as e:
        print(f"{APP_NAME}: error: {e}", file=sys.stderr)
        return 2

    try:
        if args.file:
            result = analyzer.analyze_file(args.file)
        else:
            result = analyzer.analyze_live(args.live, count=args.count, timeout=args.timeout)
    except (OSError, ValueError) as e:
        print(f"{APP_NAME}: {e}", file=sys.stderr)
        return 1

    print_report(result, sys.stdout, all_buckets=args.all_buckets)

    if args.output:
        try:
            ResultExporter().save(result, args.output)
        except (OSError, ValueError) as e:
            print(f"{APP_NAME}: {e}", file=sys.stderr)
            return 1
    return 0
