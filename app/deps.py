"""Request-scoped helpers shared by the routers.

- ``APIException``       → rendered as the ``{"error": {...}}`` envelope
- ``get_user_id``        → opaque user id kept in the signed session cookie
- ``require_lastfm``     → dependency returning the user's Last.fm token
- ``discogs_errors``     → maps Discogs / transport failures to API errors
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import httpx
from fastapi import Request

from app.discogs import DiscogsError
from app.http_client import UpstreamError
from app.store import load_tokens
from core.errors import ErrorCode
from core.models import StoredToken


class APIException(Exception):
    """An error response with a stable error code."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        *,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.headers = headers
        super().__init__(f"{status_code} {code.value}: {message}")


# ---------------------------------------------------------------------------
# User identity
# ---------------------------------------------------------------------------

def get_user_id(request: Request) -> str:
    """Return the user id from the session cookie, issuing one if absent."""
    user_id = request.session.get("user_id")
    if not user_id:
        user_id = str(uuid.uuid4())
        request.session["user_id"] = user_id
    return user_id


async def require_lastfm(request: Request) -> StoredToken:
    """Dependency: 401 unless the user has connected Last.fm."""
    user_id = request.session.get("user_id")
    if not user_id:
        raise APIException(401, ErrorCode.UNAUTHORIZED, "Session required")

    tokens = await load_tokens(user_id)
    if tokens.lastfm is None:
        raise APIException(401, ErrorCode.LASTFM_NOT_CONNECTED, "Last.fm connection required")
    return tokens.lastfm


# ---------------------------------------------------------------------------
# Upstream error mapping
# ---------------------------------------------------------------------------

def discogs_api_exception(exc: DiscogsError) -> APIException:
    if exc.is_rate_limited:
        headers = {"Retry-After": exc.retry_after} if exc.retry_after else None
        return APIException(
            429,
            ErrorCode.DISCOGS_RATE_LIMIT,
            "Discogs rate limit reached. Please retry shortly.",
            headers=headers,
        )
    status = 502 if exc.status_code >= 500 else 400
    return APIException(status, ErrorCode.DISCOGS_ERROR, exc.message)


@contextmanager
def discogs_errors() -> Iterator[None]:
    try:
        yield
    except DiscogsError as exc:
        raise discogs_api_exception(exc) from exc
    except (UpstreamError, httpx.HTTPError) as exc:
        raise APIException(502, ErrorCode.DISCOGS_ERROR, "Discogs is unreachable") from exc
