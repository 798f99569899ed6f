"""Request signing for the two upstream services.

- Last.fm: ``api_sig`` = MD5 over sorted ``key+value`` pairs plus the shared
  secret.
- Discogs: OAuth 1.0a with the PLAINTEXT signature method, sent as an
  ``Authorization: OAuth ...`` header.

Nothing here performs I/O or reads configuration; credentials are passed in.
"""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Dict, Mapping
from urllib.parse import quote, unquote

# Keys never included in a Last.fm signature.
_LASTFM_UNSIGNED_KEYS = frozenset({"format", "api_sig"})

# RFC 3986 unreserved characters.
_NONCE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"

OAUTH_NONCE_LENGTH = 24


# ---------------------------------------------------------------------------
# Last.fm
# ---------------------------------------------------------------------------

def lastfm_signature(params: Mapping[str, str], secret: str) -> str:
    """Return the 32-char lowercase hex ``api_sig`` for *params*.

    ``format`` and ``api_sig`` are always left out, even when supplied.
    Keys are sorted by code point, so ``"B"`` sorts before ``"a"``.
    """
    keys = sorted(key for key in params if key not in _LASTFM_UNSIGNED_KEYS)
    base = "".join(f"{key}{params[key]}" for key in keys) + secret
    return hashlib.md5(base.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# OAuth 1.0a helpers
# ---------------------------------------------------------------------------

def generate_random_string(length: int = 32) -> str:
    """Random string over the URL-safe unreserved alphabet (nonces, state)."""
    return "".join(secrets.choice(_NONCE_ALPHABET) for _ in range(length))


def percent_encode(value: str) -> str:
    """RFC 3986 percent-encoding: everything but unreserved characters."""
    return quote(value, safe="")


def plaintext_signature(consumer_secret: str, token_secret: str = "") -> str:
    """PLAINTEXT signature: ``enc(consumer_secret)&enc(token_secret)``."""
    return f"{percent_encode(consumer_secret)}&{percent_encode(token_secret)}"


def build_oauth_header(
    consumer_key: str,
    consumer_secret: str,
    access_token: str,
    access_token_secret: str,
) -> str:
    """``Authorization`` value for a user-authenticated Discogs call.

    A fresh nonce and timestamp are generated on every call, so two headers
    for the same credentials never match.
    """
    oauth_params = {
        "oauth_consumer_key": consumer_key,
        "oauth_token": access_token,
        "oauth_signature_method": "PLAINTEXT",
        "oauth_signature": plaintext_signature(consumer_secret, access_token_secret),
        "oauth_timestamp": str(int(time.time())),
        "oauth_nonce": generate_random_string(OAUTH_NONCE_LENGTH),
        "oauth_version": "1.0",
    }

    pairs = []
    for key, value in oauth_params.items():
        # oauth_signature is pre-encoded.
        encoded = value if key == "oauth_signature" else percent_encode(value)
        pairs.append(f'{key}="{encoded}"')
    return "OAuth " + ", ".join(pairs)


def build_app_auth_header(consumer_key: str, consumer_secret: str) -> str:
    """Key/secret header for Discogs calls that need no user token."""
    return f"Discogs key={consumer_key}, secret={consumer_secret}"


def parse_form_encoded(data: str) -> Dict[str, str]:
    """Parse an ``a=1&b=2`` body (OAuth token endpoints answer this way)."""
    params: Dict[str, str] = {}
    for pair in data.split("&"):
        key, _, value = pair.partition("=")
        if key:
            params[unquote(key)] = unquote(value)
    return params
