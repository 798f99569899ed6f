"""Discogs proxy routes: collection, search, release lookup."""

from __future__ import annotations

import re

from fastapi import APIRouter, Query, Request

from app import discogs
from app.deps import APIException, discogs_errors, get_user_id
from app.store import load_tokens
from core.errors import ErrorCode

router = APIRouter(prefix="/api/discogs", tags=["discogs"])

_MIN_PER_PAGE = 5
_MAX_PER_PAGE = 50
_RELEASE_ID_RE = re.compile(r"[0-9]+")


def is_release_id(value: str) -> bool:
    return _RELEASE_ID_RE.fullmatch(value) is not None


def _page_args(page: int, per_page: int) -> tuple[int, int]:
    """Clamp paging to what Discogs accepts."""
    return max(1, page), min(_MAX_PER_PAGE, max(_MIN_PER_PAGE, per_page))


@router.get("/collection")
async def collection(
    request: Request,
    page: int = 1,
    per_page: int = Query(25, alias="perPage"),
):
    """One page of the user's Discogs collection."""
    tokens = await load_tokens(get_user_id(request))
    if tokens.discogs is None or not tokens.discogs.access_token_secret:
        raise APIException(401, ErrorCode.DISCOGS_NOT_CONNECTED, "Discogs is not connected")

    auth_header = discogs.user_auth_header(tokens.discogs)
    page, per_page = _page_args(page, per_page)
    with discogs_errors():
        username = await discogs.get_identity(auth_header)
        result = await discogs.get_collection(auth_header, username, page, per_page)
    return result


@router.get("/search")
async def search(
    query: str = "",
    page: int = 1,
    per_page: int = Query(25, alias="perPage"),
):
    query = query.strip()
    if not query:
        raise APIException(400, ErrorCode.INVALID_QUERY, "Query is required")

    page, per_page = _page_args(page, per_page)
    with discogs_errors():
        result = await discogs.search_releases(query, page, per_page)
    return result


@router.get("/release/{release_id}")
async def release(release_id: str):
    if not is_release_id(release_id):
        raise APIException(400, ErrorCode.INVALID_RELEASE_ID, "Release id must be numeric")

    with discogs_errors():
        result = await discogs.get_release(release_id)
    return {"release": result}
