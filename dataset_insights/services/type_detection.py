"""
Shared value coercion and column type detection.

Every component that needs to decide "is this cell empty", "is this a number",
"is this a date" or "what is this value's display key" goes through this
module, so the classifier and its tests agree on one policy.

Detection is a majority vote over meaningful values with a fixed threshold,
checked in precedence order: number, then date, then string. Each column is
coerced once; the coerced values that won the vote are handed back so the
summaries do not parse the column a second time.
"""
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from dateutil import parser as date_parser

# Share of meaningful values that must coerce for a column to take a type
TYPE_DETECTION_THRESHOLD = 0.8

# Tried column-wide before falling back to per-value parsing
FAST_DATE_FORMATS = ('ISO8601', '%m/%d/%Y', '%m/%d/%Y %H:%M', '%m/%d/%Y %H:%M:%S')

# Two defaults that differ only in the year: a string that parses differently
# under each has no year of its own
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 1, 1)

_DIGIT_RE = re.compile(r'\d')


def is_meaningful(value: Any) -> bool:
    """
    True unless the value is None, an empty string or a pandas/numpy missing marker.

    Whitespace-only strings are meaningful.
    """
    if value is None:
        return False
    if isinstance(value, str):
        return value != ''
    if isinstance(value, (float, np.floating)) and math.isnan(value):
        return False
    if value is pd.NaT or value is pd.NA:
        return False
    if isinstance(value, np.datetime64) and np.isnat(value):
        return False
    return True


def coerce_number(value: Any) -> Optional[float]:
    """
    Coerce a loosely-typed scalar to a finite float.

    Returns None for booleans, non-numeric strings, non-finite results and
    any other type.
    """
    if isinstance(value, (bool, np.bool_)):
        return None

    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text or '_' in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def to_utc(moment: Any) -> Optional[datetime]:
    """Native date-like value as an aware UTC datetime; naive values are read as UTC."""
    if moment is pd.NaT:
        return None
    if isinstance(moment, np.datetime64):
        if np.isnat(moment):
            return None
        moment = pd.Timestamp(moment)
    if isinstance(moment, pd.Timestamp):
        moment = moment.to_pydatetime()
    elif not isinstance(moment, datetime):
        moment = datetime(moment.year, moment.month, moment.day)

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _parse_date_text(text: str) -> Optional[datetime]:
    try:
        first = date_parser.parse(text, default=_DEFAULT_A)
        second = date_parser.parse(text, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if first != second:
        return None
    return to_utc(first)


def parse_dates(values: Sequence[Any], min_share: float = 0.0) -> Optional[List[Optional[datetime]]]:
    """
    Parse a column of values as UTC datetimes, aligned with the input.

    Native dates pass through. Strings need at least one digit and an explicit
    year; they are tried column-wide against FAST_DATE_FORMATS first, then one
    by one with dateutil. Numbers and booleans are never dates.

    Returns None as soon as fewer than `min_share` of the values can still parse.
    """
    total = len(values)
    results: List[Optional[datetime]] = [None] * total
    pending: List[Tuple[int, str]] = []
    failures = 0

    def out_of_reach() -> bool:
        return total > 0 and (total - failures) / total < min_share

    for index, value in enumerate(values):
        if isinstance(value, (bool, np.bool_)):
            failures += 1
        elif isinstance(value, (datetime, date, np.datetime64)):
            results[index] = to_utc(value)
            if results[index] is None:
                failures += 1
        elif isinstance(value, str) and _DIGIT_RE.search(value):
            pending.append((index, value.strip()))
        else:
            failures += 1

    if out_of_reach():
        return None

    for date_format in FAST_DATE_FORMATS:
        if not pending:
            break
        parsed = pd.to_datetime(
            pd.Series([text for _, text in pending], dtype=object),
            format=date_format, utc=True, errors='coerce',
        )
        unparsed = []
        for (index, text), moment in zip(pending, parsed):
            if pd.isna(moment):
                unparsed.append((index, text))
            else:
                results[index] = to_utc(moment)
        pending = unparsed

    cache = {}
    for index, text in pending:
        if text not in cache:
            cache[text] = _parse_date_text(text)
        results[index] = cache[text]
        if results[index] is None:
            failures += 1
            if out_of_reach():
                return None

    return results


def parse_date(value: Any) -> Optional[datetime]:
    """Parse one loosely-typed scalar as an aware UTC datetime."""
    return parse_dates([value])[0]


def value_key(value: Any) -> str:
    """
    String representation used for uniqueness and frequency counts.

    Integral floats render without a trailing '.0' so that 1, 1.0 and "1"
    share a key; booleans render lowercase.
    """
    if isinstance(value, (bool, np.bool_)):
        return 'true' if value else 'false'
    if isinstance(value, (float, np.floating)) and math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    if isinstance(value, (np.integer, np.floating)):
        return str(value.item())
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a 'Z' suffix."""
    moment = to_utc(moment)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def meaningful_values(values: Iterable[Any]) -> List[Any]:
    return [v for v in values if is_meaningful(v)]


def classify_column(values: Iterable[Any]) -> Tuple[str, List[Any]]:
    """
    Classify a column and return the coerced values that decided it.

    'number' comes with the finite floats, 'date' with the UTC datetimes and
    'string' with an empty list. Uncoercible values are already dropped.
    """
    candidates = meaningful_values(values)
    if not candidates:
        return 'string', []

    total = len(candidates)

    numbers = [n for n in (coerce_number(v) for v in candidates) if n is not None]
    if len(numbers) / total >= TYPE_DETECTION_THRESHOLD:
        return 'number', numbers

    parsed = parse_dates(candidates, min_share=TYPE_DETECTION_THRESHOLD)
    if parsed is not None:
        dates = [d for d in parsed if d is not None]
        if len(dates) / total >= TYPE_DETECTION_THRESHOLD:
            return 'date', dates

    return 'string', []


def detect_column_type(values: Iterable[Any]) -> str:
    """
    Classify a column as 'number', 'date' or 'string'.

    Empty values do not vote. A column with no meaningful values is 'string'.
    """
    column_type, _ = classify_column(values)
    return column_type
