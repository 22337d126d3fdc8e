import logging
import re
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from fastapi import UploadFile, HTTPException
from openpyxl import load_workbook

from dataset_insights.core.config import get_settings
from dataset_insights.core.errors import ErrorCodes, get_error_response
from dataset_insights.core.sanitization import sanitize_filename, validate_column_name
from dataset_insights.core.performance import track_performance
from dataset_insights.services.type_detection import is_meaningful

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.csv', '.xlsx', '.xls'}

MIME_TYPE_MAP = {
    'text/csv': '.csv',
    'application/vnd.ms-excel': '.xls',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': '.xlsx',
}

# Names given to header cells left blank: pandas for CSV, ours for Excel
GENERATED_HEADER_PREFIX = "column_"
_GENERATED_HEADER_RE = re.compile(r"^(Unnamed: \d+|column_\d+)$")

DANGEROUS_MIME_TYPES = {
    'application/x-executable',
    'application/x-sharedlib',
    'application/x-msdownload',
    'text/html',
    'application/javascript',
}


def _bad_request(code: str, detail: Optional[str] = None, status_code: int = 400) -> HTTPException:
    return HTTPException(status_code=status_code, detail=get_error_response(code, detail))


def file_type_for(file_ext: str) -> str:
    return 'csv' if file_ext == '.csv' else 'xlsx'


def validate_file_extension(filename: str) -> str:
    """
    Return the lowercased extension, or raise 400 if it is missing or unsupported.
    """
    if not filename:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, "Filename is required.")

    file_ext = Path(filename).suffix.lower()

    if file_ext not in ALLOWED_EXTENSIONS:
        raise _bad_request(
            ErrorCodes.INVALID_FILE_TYPE,
            f"Unsupported file format: '{file_ext or 'none'}'."
        )

    return file_ext


def validate_mime_type(content_type: Optional[str], file_ext: str) -> None:
    """Reject dangerous MIME types; only warn on a mismatch with the extension."""
    if not content_type:
        return

    content_type = content_type.lower()
    if content_type in DANGEROUS_MIME_TYPES:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, f"Content type '{content_type}' is not allowed.")

    expected_ext = MIME_TYPE_MAP.get(content_type)
    if expected_ext and expected_ext != file_ext:
        # Browsers and OSes disagree on spreadsheet MIME types
        logger.warning(f"MIME type {content_type} doesn't match extension {file_ext}")


def _read_csv(contents: bytes) -> pd.DataFrame:
    try:
        return pd.read_csv(BytesIO(contents), skip_blank_lines=True)
    except UnicodeDecodeError:
        return pd.read_csv(BytesIO(contents), encoding='latin1', skip_blank_lines=True)


def _read_xlsx(contents: bytes) -> pd.DataFrame:
    """
    First worksheet via openpyxl, with merged ranges filled from their
    top-left cell. Native cell types (numbers, datetimes, booleans) are kept.
    """
    wb = load_workbook(BytesIO(contents), data_only=True)
    if not wb.worksheets:
        return pd.DataFrame()
    ws = wb.worksheets[0]

    merged_ranges = list(ws.merged_cells.ranges)
    for merged_range in merged_ranges:
        top_left_value = ws.cell(merged_range.min_row, merged_range.min_col).value
        ws.unmerge_cells(str(merged_range))
        for row in range(merged_range.min_row, merged_range.max_row + 1):
            for col in range(merged_range.min_col, merged_range.max_col + 1):
                ws.cell(row, col, top_left_value)

    if merged_ranges:
        logger.info(f"Unmerged {len(merged_ranges)} cell ranges in sheet '{ws.title}'")

    values = list(ws.values)
    if not values:
        return pd.DataFrame()

    header = []
    seen: Dict[str, int] = {}
    for index, name in enumerate(values[0]):
        label = str(name) if name is not None else f"{GENERATED_HEADER_PREFIX}{index + 1}"
        if label in seen:
            seen[label] += 1
            label = f"{label}.{seen[label]}"
        else:
            seen[label] = 0
        header.append(label)
    # Blank sheet rows are not records
    records = [row for row in values[1:] if any(cell is not None for cell in row)]
    return pd.DataFrame(records, columns=header, dtype=object)


@track_performance("parse_file")
async def parse_file(file: UploadFile) -> pd.DataFrame:
    """
    Parse an uploaded CSV or Excel file into a DataFrame.

    CSV cells are typed by pandas (numbers become numbers, blanks become NaN).
    Excel keeps the workbook's native cell types.
    """
    file_ext = validate_file_extension(file.filename)
    validate_mime_type(file.content_type, file_ext)

    contents = await file.read()
    if len(contents) == 0:
        raise _bad_request(ErrorCodes.FILE_EMPTY)

    try:
        if file_ext == '.csv':
            df = _read_csv(contents)
        elif file_ext == '.xlsx':
            df = _read_xlsx(contents)
        else:
            df = pd.read_excel(BytesIO(contents), sheet_name=0)
    except pd.errors.EmptyDataError:
        raise _bad_request(ErrorCodes.FILE_EMPTY)
    except Exception as e:
        logger.error(f"Error parsing {file_ext} file: {e}")
        raise _bad_request(ErrorCodes.PARSE_ERROR)

    logger.info(f"Parsed file: {sanitize_filename(file.filename)}, shape: {df.shape}")
    return df


def validate_file_content(df: pd.DataFrame) -> None:
    """
    Enforce the upstream size policy before the rows reach the analysis.

    Raises:
        HTTPException: 413 for too many rows, 400 for other violations
    """
    settings = get_settings()

    if len(df) > settings.max_dataset_rows:
        raise _bad_request(
            ErrorCodes.TOO_MANY_ROWS,
            f"Found {len(df):,} rows, maximum is {settings.max_dataset_rows:,}.",
            status_code=413,
        )

    if len(df.columns) > settings.max_file_columns:
        raise _bad_request(
            ErrorCodes.PARSE_ERROR,
            f"Found {len(df.columns)} columns, maximum is {settings.max_file_columns}."
        )

    for col in df.columns:
        if not validate_column_name(str(col)):
            raise _bad_request(ErrorCodes.PARSE_ERROR, f"Invalid column name: '{col}'.")

    for col in df.columns:
        if df[col].dtype == 'object':
            max_length = df[col].dropna().astype(str).str.len().max()
            if pd.notna(max_length) and max_length > settings.max_cell_size_bytes:
                raise _bad_request(
                    ErrorCodes.PARSE_ERROR,
                    f"Column '{col}' holds values over {settings.max_cell_size_bytes} bytes."
                )


def clean_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse whitespace in column names and drop empty columns that had no header.

    Named columns and rows are kept even when blank; they count as empty values.
    """
    blank_headers = [
        col for col in df.columns
        if _GENERATED_HEADER_RE.match(str(col)) and df[col].isna().all()
    ]
    df = df.drop(columns=blank_headers)

    def normalize_column_name(col):
        if isinstance(col, str):
            return ' '.join(col.replace('\n', ' ').replace('\r', ' ').split())
        return str(col)

    df.columns = [normalize_column_name(col) for col in df.columns]
    return df.reset_index(drop=True)


def _to_native(value: Any) -> Any:
    if not is_meaningful(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.datetime64):
        return pd.Timestamp(value).to_pydatetime()
    if isinstance(value, np.generic):
        return value.item()
    return value


def dataframe_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Row records for the analysis: blank cells become None and numpy/pandas
    scalars become plain Python values.
    """
    columns = [str(c) for c in df.columns]
    return [
        {column: _to_native(value) for column, value in zip(columns, record)}
        for record in df.itertuples(index=False, name=None)
    ]
