"""
Basic hbtad usage example.

Usage: python examples/basic_usage.py CAPTURE.pcap

Demonstrates:
- Replaying a pcap file through the histogram aggregator
- Reading the session-wide histograms
- Listing malformed and oversized frames
- Printing the cluster assigned to each source address block
"""

import sys

from hbtad import HistogramAnalyzer

# Create analyzer
analyzer = HistogramAnalyzer(
    k=3,                 # Number of clusters
    max_iterations=50,   # k-means iteration bound
)

# Analyze a pcap file
result = analyzer.analyze_file(sys.argv[1] if len(sys.argv) > 1 else 'traffic.pcap')

print(f"Frames seen: {result.stats['frames_seen']}")
print(f"Malformed: {result.malformed_count}, oversized: {result.oversized_count}")
print()

hs = result.histograms
print(f"Protocol counts (tcp, udp, icmp, ip): {hs.protocol.tolist()}")
print("Busiest destination ports:")
for port, count in sorted(hs.nonzero('dst_port'), key=lambda p: -p[1])[:5]:
    print(f"  {port}: {count}")
print()

for event in result.events:
    print(f"  frame {event.index}: {event.kind.value} ({event.reason or event.size})")

if result.assignment is not None:
    print(f"Clusters after {result.assignment.iterations} iterations:")
    for entity, label in result.labels_by_entity().items():
        print(f"  {entity}.0.0.0/8 -> cluster {label}")
