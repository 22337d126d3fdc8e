"""
Error codes and structured error payloads for the HTTP boundary.

The analysis core does not raise for bad data; these codes cover ingestion
and request handling only.
"""
from typing import Dict, Optional


class ErrorCodes:
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_EMPTY = "FILE_EMPTY"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    PARSE_ERROR = "PARSE_ERROR"
    TOO_MANY_ROWS = "TOO_MANY_ROWS"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.FILE_TOO_LARGE: {
        "message": "File is too large",
        "detail": "The uploaded file exceeds the configured size limit.",
        "suggestion": "Upload a smaller extract or only the columns you need."
    },
    ErrorCodes.FILE_EMPTY: {
        "message": "File contains no records",
        "detail": "No data rows were found in the uploaded file.",
        "suggestion": "Check that the first row holds the headers and that data rows follow it."
    },
    ErrorCodes.INVALID_FILE_TYPE: {
        "message": "Unsupported file type",
        "detail": "Only CSV and Excel files (.csv, .xlsx, .xls) can be analysed.",
        "suggestion": "Export the data as CSV or Excel and upload it again."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "File could not be read",
        "detail": "The file content does not match its format.",
        "suggestion": "Save the file again as a fresh CSV or Excel workbook."
    },
    ErrorCodes.TOO_MANY_ROWS: {
        "message": "Dataset is too large to analyse",
        "detail": "The dataset has more rows than the analysis accepts.",
        "suggestion": "Analyse a sample or split the dataset into smaller parts."
    },
    ErrorCodes.PROCESSING_ERROR: {
        "message": "Dataset could not be analysed",
        "detail": "Something went wrong while analysing the dataset.",
        "suggestion": "Check that every row is a record of column name to value."
    },
    ErrorCodes.RATE_LIMIT_EXCEEDED: {
        "message": "Too many requests",
        "detail": "Requests from this address exceed the configured rate limit.",
        "suggestion": "Wait a minute and try again."
    },
    ErrorCodes.TIMEOUT: {
        "message": "Request timed out",
        "detail": "The request took longer than the configured timeout.",
        "suggestion": "Try a smaller dataset."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Unexpected error",
        "detail": "An unexpected error occurred while processing the request.",
        "suggestion": "Try again. If the problem persists, contact support with the correlation ID."
    }
}


def get_error_response(error_code: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """
    Get structured error response for an error code.

    Args:
        error_code: One of the ErrorCodes constants
        additional_detail: Optional additional detail to append

    Returns:
        Dictionary with code, message, detail, and suggestion
    """
    error_info = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])

    response = {
        "code": error_code,
        "message": error_info["message"],
        "detail": error_info["detail"],
        "suggestion": error_info["suggestion"]
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"

    return response
