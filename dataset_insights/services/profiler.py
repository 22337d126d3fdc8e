from datetime import datetime
from typing import Any, Dict, List, Mapping, Sequence

from dataset_insights.core.schemas import (
    CategoricalSummary,
    ColumnProfile,
    DateSummary,
    NumericSummary,
    TopValue,
)
from dataset_insights.services.type_detection import (
    classify_column,
    coerce_number,
    format_timestamp,
    is_meaningful,
    parse_dates,
    utc_now,
    value_key,
)

SAMPLE_SIZE = 5
TOP_VALUES_LIMIT = 5

# Span thresholds in days, checked largest first; the first match wins
GRANULARITY_THRESHOLDS = [
    (730, 'year'),
    (180, 'quarter'),
    (90, 'month'),
    (30, 'week'),
]

Row = Mapping[str, Any]


def extract_columns(rows: Sequence[Row]) -> List[str]:
    """Column names come from the first row; later rows are not reconciled."""
    if not rows:
        return []
    return list(rows[0].keys())


def granularity_for_span(span_days: float) -> str:
    for threshold, granularity in GRANULARITY_THRESHOLDS:
        if span_days > threshold:
            return granularity
    return 'day'


def _plain(number: float):
    """Integral floats as ints, so whole-number data stays whole on the wire."""
    return int(number) if number.is_integer() else number


def summarize_numbers(numbers: List[float]) -> NumericSummary:
    count = len(numbers)
    if count == 0:
        return NumericSummary(min=0, max=0, sum=0, average=0, count=0)

    total = 0.0
    for number in numbers:
        total += number

    return NumericSummary(
        min=_plain(min(numbers)),
        max=_plain(max(numbers)),
        sum=_plain(total),
        average=_plain(total / count),
        count=count,
    )


def build_numeric_summary(values: List[Any]) -> NumericSummary:
    return summarize_numbers([n for n in (coerce_number(v) for v in values) if n is not None])


def summarize_dates(dates: List[datetime]) -> DateSummary:
    if not dates:
        # No parseable dates: the current instant stands in for the range
        now = format_timestamp(utc_now())
        return DateSummary(start=now, end=now, granularity='month')

    first, last = min(dates), max(dates)
    span_days = (last - first).total_seconds() / 86400

    return DateSummary(
        start=format_timestamp(first),
        end=format_timestamp(last),
        granularity=granularity_for_span(span_days),
    )


def build_date_summary(values: List[Any]) -> DateSummary:
    return summarize_dates([d for d in parse_dates(values) if d is not None])


def build_categorical_summary(values: List[Any]) -> CategoricalSummary:
    """
    Top values by frequency.

    Dicts keep insertion order, so the enumeration index is the
    first-encountered position used to break ties.
    """
    frequencies: Dict[str, int] = {}
    for value in values:
        key = value_key(value)
        frequencies[key] = frequencies.get(key, 0) + 1

    ranked = sorted(
        enumerate(frequencies.items()),
        key=lambda item: (-item[1][1], item[0]),
    )

    return CategoricalSummary(top_values=[
        TopValue(value=value, count=count)
        for _, (value, count) in ranked[:TOP_VALUES_LIMIT]
    ])


def build_column_profile(column: str, rows: Sequence[Row]) -> ColumnProfile:
    values = [row.get(column) for row in rows]
    meaningful = [v for v in values if is_meaningful(v)]
    column_type, coerced = classify_column(meaningful)

    if column_type == 'number':
        summary = summarize_numbers(coerced)
    elif column_type == 'date':
        summary = summarize_dates(coerced)
    else:
        summary = build_categorical_summary(meaningful)

    return ColumnProfile(
        column=column,
        type=column_type,
        empty_values=len(values) - len(meaningful),
        unique_values=len({value_key(v) for v in meaningful}),
        sample_values=meaningful[:SAMPLE_SIZE],
        summary=summary,
    )


def profile_columns(rows: Sequence[Row]) -> List[ColumnProfile]:
    """
    Classify and summarize every column of the row set.

    Malformed values never raise; they are left out of the summary they
    fail to coerce for.
    """
    return [build_column_profile(column, rows) for column in extract_columns(rows)]
