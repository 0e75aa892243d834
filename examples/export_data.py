"""
Export example.

Usage: python examples/export_data.py CAPTURE.pcap

Demonstrates exporting analysis results to different formats:
- DataFrame (pandas)
- CSV
- JSON
"""

import os
import sys

from hbtad import HistogramAnalyzer, histograms_to_dataframe, vectors_to_dataframe, to_csv, to_json

analyzer = HistogramAnalyzer(k=2)
result = analyzer.analyze_file(sys.argv[1] if len(sys.argv) > 1 else 'traffic.pcap')
os.makedirs('output', exist_ok=True)

# === Histograms as a long-form DataFrame ===
df = histograms_to_dataframe(result.histograms)
print(df[df['histogram'] == 'protocol'])
print()

# === Feature vectors, one row per source address block ===
vectors = vectors_to_dataframe(result.vectors)
print(f"Vectors shape: {vectors.shape}")
print(vectors.columns.tolist()[:10])
print()

# === Export to CSV ===
to_csv(result, 'output/vectors.csv')
print("Exported to CSV: output/vectors.csv")

# === Export to JSON ===
to_json(result, 'output/report.json')
print("Exported to JSON: output/report.json")
