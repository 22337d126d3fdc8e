"""
Dataset analysis entry point.

Composes the column classifier/summarizer and the chart recommender over
one in-memory row set. Timing and logging happen at the HTTP boundary.
"""
from typing import Any, Mapping, Sequence

from dataset_insights.core.schemas import DatasetAnalysis
from dataset_insights.services.profiler import profile_columns
from dataset_insights.services.recommender import recommend_charts


def analyse(rows: Sequence[Mapping[str, Any]]) -> DatasetAnalysis:
    """
    Analyse a row set.

    Args:
        rows: Row records sharing the first row's column set. Size limits are
            enforced by the caller.

    Returns:
        Row count, one profile per column, and up to 10 chart suggestions
    """
    columns = profile_columns(rows)
    return DatasetAnalysis(
        row_count=len(rows),
        columns=columns,
        chart_suggestions=recommend_charts(columns),
    )
