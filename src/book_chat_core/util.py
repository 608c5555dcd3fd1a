from __future__ import annotations

import hashlib
import secrets


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def count_words(text: str) -> int:
    return len(text.split())


def new_session_id() -> str:
    """
    Random, unguessable chat session token (32 hex chars).
    """
    return secrets.token_hex(16)
