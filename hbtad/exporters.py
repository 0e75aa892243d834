"""
Export functionality for histograms, feature vectors and cluster labels.

Examples:
    Histograms as a long-form DataFrame:
        >>> from hbtad import HistogramAnalyzer, histograms_to_dataframe
        >>> result = HistogramAnalyzer().analyze_file('traffic.pcap')
        >>> df = histograms_to_dataframe(result.histograms)
        >>> print(df[df['histogram'] == 'dst_port'])

    Save everything:
        >>> from hbtad import ResultExporter
        >>> ResultExporter().save(result, 'report.json')
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any
import json

if TYPE_CHECKING:
    from hbtad.clustering.kmeans import ClusterAssignment
    from hbtad.core.aggregator import HistogramSet
    from hbtad.core.analyzer import AnalysisResult
    from hbtad.features.vectors import FeatureVectors


def _pandas():
    try:
        import pandas as pd
    except ImportError:
        raise ImportError("pandas is required for DataFrame export. Install with: pip install pandas")
    return pd


def histograms_to_dataframe(histograms: HistogramSet, include_zero: bool = False) -> object:
    """
    Convert a HistogramSet to a long-form DataFrame.

    Columns: histogram, bucket, count. Zero buckets are dropped unless
    ``include_zero`` is set.
    """
    pd = _pandas()

    rows = []
    for name, arr in histograms.items():
        for bucket, count in enumerate(arr.tolist()):
            if count or include_zero:
                rows.append({'histogram': name, 'bucket': bucket, 'count': count})
    return pd.DataFrame(rows, columns=['histogram', 'bucket', 'count'])


def vectors_to_dataframe(vectors: FeatureVectors) -> object:
    """One row per entity, one column per feature dimension."""
    pd = _pandas()
    df = pd.DataFrame(vectors.matrix, columns=vectors.columns)
    df.insert(0, 'entity', vectors.keys)
    return df


def assignment_to_dataframe(vectors: FeatureVectors, assignment: ClusterAssignment) -> object:
    """Columns: entity, cluster."""
    pd = _pandas()
    return pd.DataFrame({
        'entity': list(vectors.keys),
        'cluster': [int(label) for label in assignment.labels],
    })


def to_dict(result: AnalysisResult, include_zero: bool = False) -> dict[str, Any]:
    """
    Convert an AnalysisResult to plain Python containers.

    Histograms are reported as {bucket: count} for non-zero buckets unless
    ``include_zero`` is set, in which case the full arrays are included.
    """
    if include_zero:
        histograms = result.histograms.to_dict()
    else:
        histograms = {
            name: {str(bucket): count for bucket, count in result.histograms.nonzero(name)}
            for name, _ in result.histograms.items()
        }

    data: dict[str, Any] = {
        'snap_len': result.histograms.snap_len,
        'stats': dict(result.stats),
        'histograms': histograms,
        'events': [
            {'index': e.index, 'kind': e.kind.value, 'reason': e.reason, 'size': e.size}
            for e in result.events
        ],
        'vectors': {str(k): v for k, v in result.vectors.to_dict().items()},
        'clusters': None,
    }
    if result.assignment is not None:
        data['clusters'] = {
            'k': result.assignment.k,
            'iterations': result.assignment.iterations,
            'converged': result.assignment.converged,
            'labels': {str(k): v for k, v in result.labels_by_entity().items()},
        }
    return data


def to_json(result: AnalysisResult, path: str | Path, indent: int = 2) -> None:
    """Export an AnalysisResult to a JSON file."""
    with open(Path(path), 'w', encoding='utf-8') as f:
        json.dump(to_dict(result), f, indent=indent, default=str)


def to_csv(result: AnalysisResult, path: str | Path) -> None:
    """
    Export feature vectors with their cluster labels to CSV.

    Raises:
        ImportError: If pandas is not installed
    """
    df = vectors_to_dataframe(result.vectors)
    if result.assignment is not None:
        df['cluster'] = [int(label) for label in result.assignment.labels]
    df.to_csv(Path(path), index=False)


class ResultExporter:
    """
    Helper class for exporting analysis results.

    Args:
        include_zero: Include empty histogram buckets in JSON output
    """

    def __init__(self, include_zero: bool = False):
        self.include_zero = include_zero

    def to_dict(self, result: AnalysisResult) -> dict[str, Any]:
        return to_dict(result, include_zero=self.include_zero)

    def to_json(self, result: AnalysisResult, path: str | Path, indent: int = 2) -> None:
        with open(Path(path), 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(result), f, indent=indent, default=str)

    def to_csv(self, result: AnalysisResult, path: str | Path) -> None:
        to_csv(result, path)

    def save(self, result: AnalysisResult, path: str | Path) -> None:
        """
        Save based on extension: .json (full report) or .csv (vectors and labels).

        Raises:
            ValueError: If file extension is not supported
        """
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix == '.json':
            self.to_json(result, path)
        elif suffix == '.csv':
            self.to_csv(result, path)
        else:
            raise ValueError(f"Unsupported file extension: {suffix}")
