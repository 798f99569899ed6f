"""Error codes and the JSON error envelope returned by every API route."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ErrorCode(str, Enum):
    AUTH_DENIED = "AUTH_DENIED"
    CONFIG_ERROR = "CONFIG_ERROR"
    DISCOGS_ERROR = "DISCOGS_ERROR"
    DISCOGS_NOT_CONNECTED = "DISCOGS_NOT_CONNECTED"
    DISCOGS_RATE_LIMIT = "DISCOGS_RATE_LIMIT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_QUERY = "INVALID_QUERY"
    INVALID_RELEASE_ID = "INVALID_RELEASE_ID"
    INVALID_STATE = "INVALID_STATE"
    LASTFM_ERROR = "LASTFM_ERROR"
    LASTFM_NOT_CONNECTED = "LASTFM_NOT_CONNECTED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    request_id: str
    details: Optional[Any] = None


class APIError(BaseModel):
    """``{"error": {...}}`` envelope."""

    error: ErrorBody


def create_api_error(code: ErrorCode, message: str, details: Any = None) -> dict:
    """Build the error envelope with a fresh request id.

    ``details`` is omitted from the output when not given.
    """
    body = ErrorBody(
        code=code,
        message=message,
        request_id=str(uuid.uuid4()),
        details=details,
    )
    return APIError(error=body).model_dump(mode="json", exclude_none=True)
