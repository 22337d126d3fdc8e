from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Any, Dict, Union, Literal

ColumnType = Literal['number', 'date', 'string']
Granularity = Literal['day', 'week', 'month', 'quarter', 'year']
ChartType = Literal['line', 'bar', 'area', 'table']


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NumericSummary(CamelModel):
    # Integral results stay ints so they serialize without a trailing .0
    min: Union[int, float]
    max: Union[int, float]
    sum: Union[int, float]
    average: Union[int, float]
    count: int


class DateSummary(CamelModel):
    start: str  # ISO-8601, UTC
    end: str
    granularity: Granularity


class TopValue(CamelModel):
    value: str
    count: int


class CategoricalSummary(CamelModel):
    top_values: List[TopValue]


class ColumnProfile(CamelModel):
    column: str
    type: ColumnType
    empty_values: int
    unique_values: int
    sample_values: List[Any]
    summary: Union[NumericSummary, DateSummary, CategoricalSummary]


class ChartSuggestion(CamelModel):
    type: ChartType
    label: str
    x_axis: str
    y_axis: Union[str, List[str]]  # list of every column for 'table'
    description: str


class DatasetAnalysis(CamelModel):
    row_count: int
    columns: List[ColumnProfile]
    chart_suggestions: List[ChartSuggestion]


class AnalyseRequest(CamelModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class UploadAnalysis(CamelModel):
    filename: str
    file_type: Literal['csv', 'xlsx']
    row_count: int
    column_count: int
    preview: List[Dict[str, Any]]
    analysis: DatasetAnalysis
