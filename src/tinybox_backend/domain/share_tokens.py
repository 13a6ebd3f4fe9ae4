from __future__ import annotations

import secrets


PERMANENT_SHARE_TOKEN_PREFIX = "perma_"

# 24 random bytes -> 192 bits of entropy, 32 url-safe characters.
_SHARE_TOKEN_RANDOM_BYTES = 24


def generate_share_token_id() -> str:
    return secrets.token_urlsafe(_SHARE_TOKEN_RANDOM_BYTES)


def build_share_token(random_id: str, *, permanent: bool) -> str:
    rid = (random_id or "").strip()
    if not rid:
        raise ValueError("share token random id must not be empty")
    return f"{PERMANENT_SHARE_TOKEN_PREFIX}{rid}" if permanent else rid


def new_share_token(*, permanent: bool) -> str:
    random_id = generate_share_token_id()
    # A time-boxed token must never decode as permanent.
    while not permanent and random_id.startswith(PERMANENT_SHARE_TOKEN_PREFIX):
        random_id = generate_share_token_id()
    return build_share_token(random_id, permanent=permanent)


def is_permanent_share_token(token: object) -> bool:
    # Anything that is not clearly "prefix + random part" decodes as time-boxed.
    if not isinstance(token, str):
        return False
    if not token.startswith(PERMANENT_SHARE_TOKEN_PREFIX):
        return False
    return bool(token[len(PERMANENT_SHARE_TOKEN_PREFIX) :].strip())


def token_log_prefix(token: str | None) -> str:
    """Non-secret handle for logs; never log full tokens."""
    t = token or ""
    if t.startswith(PERMANENT_SHARE_TOKEN_PREFIX):
        return PERMANENT_SHARE_TOKEN_PREFIX + t[len(PERMANENT_SHARE_TOKEN_PREFIX) :][:4] + "..."
    return t[:4] + "..."
