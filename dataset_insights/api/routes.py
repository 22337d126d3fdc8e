import logging
from typing import Any, Dict, List
from fastapi import APIRouter, UploadFile, File, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from slowapi import Limiter
from slowapi.util import get_remote_address
from dataset_insights.services.analysis import analyse
from dataset_insights.services.parser import (
    clean_dataframe,
    dataframe_to_rows,
    file_type_for,
    parse_file,
    validate_file_content,
    validate_file_extension,
)
from dataset_insights.core.schemas import AnalyseRequest, DatasetAnalysis, UploadAnalysis
from dataset_insights.core.errors import ErrorCodes, get_error_response
from dataset_insights.core.config import get_settings
from dataset_insights.core.sanitization import sanitize_filename, sanitize_for_logging
from dataset_insights.core.performance import track_performance

logger = logging.getLogger(__name__)

router = APIRouter()

# Shared with main.py through app.state.limiter
limiter = Limiter(key_func=get_remote_address)


def rate_limit() -> str:
    """Per-IP limit, read from settings on every request."""
    return f"{get_settings().rate_limit_per_minute}/minute"


def _error(request: Request, status_code: int, code: str, detail: str = None) -> HTTPException:
    error_info = get_error_response(code, detail)
    error_info['correlation_id'] = getattr(request.state, 'correlation_id', 'unknown')
    return HTTPException(status_code=status_code, detail=error_info)


def _tag_correlation(request: Request, exc: HTTPException) -> HTTPException:
    if isinstance(exc.detail, dict):
        exc.detail.setdefault('correlation_id', getattr(request.state, 'correlation_id', 'unknown'))
    return exc


@track_performance("analyse")
def run_analysis(rows: List[Dict[str, Any]]) -> DatasetAnalysis:
    analysis = analyse(rows)
    logger.info(
        f"Analysed dataset: {analysis.row_count} rows, {len(analysis.columns)} columns, "
        f"{len(analysis.chart_suggestions)} chart suggestions"
    )
    return analysis


async def _check_file_size_streaming(file: UploadFile, limit_bytes: int) -> int:
    """
    Measure the upload in 1MB chunks, stopping once it passes the limit.
    """
    file_size = 0
    chunk_size = 1024 * 1024

    await file.seek(0)
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        file_size += len(chunk)
        if file_size > limit_bytes:
            break

    await file.seek(0)
    return file_size


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.post("/analyse", response_model=DatasetAnalysis)
@limiter.limit(rate_limit)
def analyse_rows(request: Request, payload: AnalyseRequest):
    """
    Analyse rows that were already parsed by the caller.

    The body is `{"rows": [{column: value, ...}, ...]}`.
    """
    settings = get_settings()
    rows = payload.rows

    if len(rows) > settings.max_dataset_rows:
        raise _error(
            request, 413, ErrorCodes.TOO_MANY_ROWS,
            f"Received {len(rows):,} rows, maximum is {settings.max_dataset_rows:,}."
        )

    try:
        return run_analysis(rows)
    except Exception as e:
        logger.error(f"Analysis failed for {len(rows)} rows: {e}", exc_info=True)
        raise _error(request, 500, ErrorCodes.PROCESSING_ERROR)


@router.post("/upload", response_model=UploadAnalysis)
@limiter.limit(rate_limit)
async def upload_file(request: Request, file: UploadFile = File(...)):
    """
    Parse an uploaded CSV or Excel file and analyse its rows.

    Returns file metadata, a preview of the first rows and the analysis.
    """
    settings = get_settings()
    safe_filename = sanitize_filename(file.filename) if file.filename else 'unknown'

    try:
        file_ext = validate_file_extension(file.filename)

        file_size = await _check_file_size_streaming(file, settings.max_file_size_bytes)
        if file_size > settings.max_file_size_bytes:
            raise _error(
                request, 413, ErrorCodes.FILE_TOO_LARGE,
                f"Maximum size is {settings.max_file_size_mb}MB."
            )
        if file_size == 0:
            raise _error(request, 400, ErrorCodes.FILE_EMPTY)

        logger.info(
            f"Processing file: {sanitize_for_logging(safe_filename)}, size: {file_size / 1024:.2f}KB"
        )

        df = await parse_file(file)
        validate_file_content(df)
        df = clean_dataframe(df)

        if df.empty:
            raise _error(request, 400, ErrorCodes.FILE_EMPTY)

        rows = dataframe_to_rows(df)
        analysis = await run_in_threadpool(run_analysis, rows)

        logger.info(
            f"Analysed file: {sanitize_for_logging(safe_filename)}, "
            f"{analysis.row_count} rows, {len(analysis.chart_suggestions)} chart suggestions"
        )

        return UploadAnalysis(
            filename=safe_filename,
            file_type=file_type_for(file_ext),
            row_count=len(rows),
            column_count=len(df.columns),
            preview=rows[:settings.preview_limit],
            analysis=analysis,
        )
    except HTTPException as exc:
        raise _tag_correlation(request, exc)
    except Exception as e:
        logger.error(
            f"Unexpected error processing file {sanitize_for_logging(safe_filename)}: {e}",
            exc_info=True
        )
        raise _error(request, 500, ErrorCodes.UNKNOWN_ERROR)
