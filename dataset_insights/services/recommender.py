"""
Chart recommendation service.

This module maps the type combination of profiled columns to chart
suggestions using deterministic rules. Rules run in a fixed order and
later fallbacks only fire when nothing earlier matched.
"""
from typing import List, Sequence

from dataset_insights.core.schemas import ChartSuggestion, ColumnProfile

MAX_SUGGESTIONS = 10


def recommend_charts(columns: Sequence[ColumnProfile]) -> List[ChartSuggestion]:
    """
    Propose chart suggestions from column profiles.

    Rules:
    - DATE + NUMBER = LINE, for every pair
    - STRING + NUMBER = BAR, for every pair (always evaluated)
    - two NUMBERs and nothing else matched = one AREA
    - nothing matched = one TABLE over every column

    Args:
        columns: Column profiles in discovery order

    Returns:
        Up to 10 suggestions in generation order
    """
    suggestions: List[ChartSuggestion] = []

    numeric_cols = [c for c in columns if c.type == 'number']
    date_cols = [c for c in columns if c.type == 'date']
    categorical_cols = [c for c in columns if c.type == 'string']

    # 1. Rule: DATE + NUMBER = LINE (time series)
    for date_col in date_cols:
        for num_col in numeric_cols:
            suggestions.append(ChartSuggestion(
                type='line',
                label=f"{num_col.column} by {date_col.column}",
                x_axis=date_col.column,
                y_axis=num_col.column,
                description='time series',
            ))

    # 2. Rule: STRING + NUMBER = BAR (category comparison)
    for cat_col in categorical_cols:
        for num_col in numeric_cols:
            suggestions.append(ChartSuggestion(
                type='bar',
                label=f"{num_col.column} by {cat_col.column}",
                x_axis=cat_col.column,
                y_axis=num_col.column,
                description='category comparison',
            ))

    # 3. Rule: NUMBER vs NUMBER = AREA, only when nothing else matched
    if not suggestions and len(numeric_cols) >= 2:
        first, second = numeric_cols[0], numeric_cols[1]
        suggestions.append(ChartSuggestion(
            type='area',
            label=f"{first.column} vs {second.column}",
            x_axis=first.column,
            y_axis=second.column,
            description='direct comparison',
        ))

    # 4. Fallback: TABLE
    if not suggestions:
        suggestions.append(ChartSuggestion(
            type='table',
            label='Table view',
            x_axis='rows',
            y_axis=[c.column for c in columns],
            description='basic exploration',
        ))

    return suggestions[:MAX_SUGGESTIONS]
