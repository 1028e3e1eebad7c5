"""Utility helper functions for the media server."""

import time
import uuid
from datetime import datetime, timezone
from typing import List
from urllib.parse import quote


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def get_current_time() -> datetime:
    """
    Get the current time as an aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def parse_class_codes(codes_str: str) -> List[str]:
    """
    Parse comma-separated class codes into a de-duplicated list.

    Args:
        codes_str: Comma-separated codes (e.g., "X1, X2,X1")

    Returns:
        Trimmed codes in first-seen order
    """
    codes = []
    for code in codes_str.split(','):
        code = code.strip()
        if code and code not in codes:
            codes.append(code)
    return codes


def build_stored_filename(original_name: str) -> str:
    """
    Prefix an uploaded file name with the upload time in epoch milliseconds.
    """
    return f"{int(time.time() * 1000)}_{original_name}"


def content_disposition(filename: str, disposition: str = "inline") -> str:
    """
    Build a Content-Disposition header value that survives any file name.

    Carries an ASCII ``filename`` fallback for old clients and the exact
    name as RFC 5987 ``filename*``.
    """
    fallback = "".join(
        char if 0x20 <= ord(char) < 0x7f and char not in '"\\' else "_"
        for char in filename
    )
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
