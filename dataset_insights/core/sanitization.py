"""
Sanitization of user-supplied names before they reach logs or validation.
"""
import re

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')

# Newline, carriage return and tab are common in spreadsheet headers
_UNSAFE_COLUMN_PATTERNS = [
    re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]'),
    re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$', re.IGNORECASE),
]


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Strip path components and control characters from an uploaded filename.

    Returns "unknown" when nothing usable is left.
    """
    if not filename:
        return "unknown"

    filename = filename.split('/')[-1].split('\\')[-1]
    filename = _CONTROL_CHARS.sub('', filename)
    filename = filename.strip('. ')

    if len(filename) > max_length:
        filename = filename[:max_length]

    return filename or "unknown"


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """Flatten newlines and drop control characters so a value cannot forge log lines."""
    if not value:
        return ""

    value = re.sub(r'[\r\n]', ' ', value)
    value = _CONTROL_CHARS.sub('', value)

    if len(value) > max_length:
        value = value[:max_length] + "..."

    return value


def validate_column_name(name: str) -> bool:
    if not name or len(name) > 1000:
        return False
    return not any(pattern.search(name) for pattern in _UNSAFE_COLUMN_PATTERNS)
