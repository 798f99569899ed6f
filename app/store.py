"""Typed accessors over the key-value store: tokens, OAuth state, sessions.

Key layout:
  user:{user_id}:tokens        → StoredTokens JSON
  oauth:{service}:{token}      → state metadata JSON (10 min TTL)
  session:{session_id}         → Session JSON
  session:current:{user_id}    → session id
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional

from pydantic import ValidationError

from app.db import kv_delete, kv_get, kv_put
from core.models import Session, StoredTokens

logger = logging.getLogger(__name__)

OAUTH_STATE_TTL_SECONDS = 600


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

async def load_tokens(user_id: str) -> StoredTokens:
    raw = await kv_get(f"user:{user_id}:tokens")
    if raw is None:
        return StoredTokens()
    return StoredTokens.model_validate_json(raw)


async def store_tokens(user_id: str, tokens: StoredTokens) -> None:
    await kv_put(f"user:{user_id}:tokens", tokens.model_dump_json())


# ---------------------------------------------------------------------------
# OAuth state (CSRF protection / request-token secrets)
# ---------------------------------------------------------------------------

async def store_oauth_state(service: str, state_token: str, metadata: Dict[str, str]) -> None:
    await kv_put(
        f"oauth:{service}:{state_token}",
        json.dumps(metadata),
        ttl_seconds=OAUTH_STATE_TTL_SECONDS,
    )


async def pop_oauth_state(service: str, state_token: str) -> Optional[Dict[str, str]]:
    """Return and delete the state stored for *state_token* (one-shot)."""
    key = f"oauth:{service}:{state_token}"
    raw = await kv_get(key)
    if raw is None:
        return None
    await kv_delete(key)
    return json.loads(raw)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

async def save_session(session: Session) -> None:
    """Persist *session* and mark it as its user's current session."""
    await kv_put(f"session:{session.id}", session.model_dump_json())
    await kv_put(f"session:current:{session.user_id}", session.id)


async def load_session(session_id: str) -> Optional[Session]:
    """Load a stored session; rows that fail validation read as missing."""
    raw = await kv_get(f"session:{session_id}")
    if raw is None:
        return None
    try:
        return Session.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Discarding invalid session %s: %s", session_id, exc.errors()[0]["msg"])
        return None


async def load_current_session(user_id: str) -> Optional[Session]:
    session_id = await kv_get(f"session:current:{user_id}")
    if not session_id:
        return None
    return await load_session(session_id)
