# Aggregation of fold-level metrics
# Mean and standard error per (candidate, metric); undefined values are excluded

from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .metrics import ConfusionCounts


@dataclass(frozen=True)
class MetricRecord:
    """One metric value for one candidate on one fold. value is None when undefined."""
    candidate: str
    fold_id: str
    metric: str
    value: Optional[float]
    error: Optional[str] = None


class MetricSummary(NamedTuple):
    mean: float
    std_err: float


def _defined_values(records: List[MetricRecord]) -> Dict[str, Dict[str, List[float]]]:
    grouped = {}
    for record in records:
        per_candidate = grouped.setdefault(record.candidate, {})
        values = per_candidate.setdefault(record.metric, [])
        if record.value is not None and not np.isnan(record.value):
            values.append(record.value)
    return grouped


def _summarize(values):
    if not values:
        return MetricSummary(float('nan'), float('nan'))
    if len(values) == 1:
        return MetricSummary(float(values[0]), float('nan'))
    return MetricSummary(float(np.mean(values)), float(stats.sem(values, ddof=1)))


def aggregate(records):
    """
    Summarize fold-level records.

    Returns:
        {candidate: {metric: MetricSummary(mean, std_err)}} where std_err is
        the sample standard deviation over the defined fold values divided by
        the square root of their count.
    """
    return {
        candidate: {metric: _summarize(values) for metric, values in metrics.items()}
        for candidate, metrics in _defined_values(records).items()
    }


def summary_frame(records):
    """Aggregate as a long table: candidate, metric, mean, std_err, n."""
    rows = []
    for candidate, metrics in _defined_values(records).items():
        for metric, values in metrics.items():
            summary = _summarize(values)
            rows.append({
                'candidate': candidate,
                'metric': metric,
                'mean': summary.mean,
                'std_err': summary.std_err,
                'n': len(values),
            })
    return pd.DataFrame(rows, columns=['candidate', 'metric', 'mean', 'std_err', 'n'])


def average_confusion_matrix(counts):
    """Element-wise mean of per-fold confusion counts (cells are not re-normalized)."""
    counts = list(counts)
    if not counts:
        raise ValueError("No confusion matrices to average")
    return ConfusionCounts(
        tp=float(np.mean([c.tp for c in counts])),
        fp=float(np.mean([c.fp for c in counts])),
        tn=float(np.mean([c.tn for c in counts])),
        fn=float(np.mean([c.fn for c in counts])),
    )
