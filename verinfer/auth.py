"""
Caller Identity — API Keys to User Ids

Queries and verifications belong to a user, and only the owner may
read or verify them. The user is resolved from the X-API-Key header.

    VERINFER_API_KEYS=alice:key1,bob:key2,key3

A labelled key ("alice:key1") resolves to its label; a bare key
resolves to a 12-char hash of itself. Only key hashes are kept in
memory. With no keys configured every caller is the "default" user.
"""

from __future__ import annotations

import hashlib
import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

DEFAULT_USER_ID = "default"


def _hash(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()


def user_id_for_key(api_key: str) -> str:
    return _hash(api_key)[:12]


def load_keys(raw: str) -> dict[str, str]:
    """Parse the key list into {key hash: user id}."""
    keys: dict[str, str] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        label, sep, key = entry.partition(":")
        if not sep:
            label, key = "", label
        key = key.strip()
        if key:
            keys[_hash(key)] = label.strip() or user_id_for_key(key)
    return keys


_KEY_USERS = load_keys(os.getenv("VERINFER_API_KEYS", ""))

AUTH_ENABLED = len(_KEY_USERS) > 0


def identify(api_key: Optional[str]) -> Optional[str]:
    """User id for a key, or None if the key is unknown."""
    if not api_key:
        return None
    return _KEY_USERS.get(_hash(api_key))


async def require_user(
    api_key: Optional[str] = Security(API_KEY_HEADER),
) -> str:
    """FastAPI dependency returning the calling user's id."""
    if not AUTH_ENABLED:
        return DEFAULT_USER_ID

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Include X-API-Key header.",
        )

    user_id = identify(api_key)
    if user_id is None:
        raise HTTPException(status_code=403, detail="Invalid API key.")
    return user_id


def generate_api_key() -> str:
    """New random key for provisioning."""
    return f"vi_{secrets.token_urlsafe(32)}"
