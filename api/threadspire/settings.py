"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Snippets shown in cards are the first segment cut to this many characters.
SNIPPET_LENGTH: int = _int_env("THREADSPIRE_SNIPPET_LENGTH", 150)

# Tag limits mirror the thread editor.
MAX_TAGS_PER_THREAD: int = _int_env("THREADSPIRE_MAX_TAGS_PER_THREAD", 5)
MAX_TAG_LENGTH: int = _int_env("THREADSPIRE_MAX_TAG_LENGTH", 20)

MAX_TITLE_LENGTH: int = _int_env("THREADSPIRE_MAX_TITLE_LENGTH", 200)
DEFAULT_PAGE_SIZE: int = _int_env("THREADSPIRE_DEFAULT_PAGE_SIZE", 10)
MAX_PAGE_SIZE: int = _int_env("THREADSPIRE_MAX_PAGE_SIZE", 100)

# Discovery
TRENDING_WINDOW_DAYS: int = _int_env("THREADSPIRE_TRENDING_WINDOW_DAYS", 7)
FEATURED_CANDIDATE_POOL: int = _int_env("THREADSPIRE_FEATURED_CANDIDATE_POOL", 50)
DISCOVERY_CACHE_TTL_SECONDS: int = _int_env("THREADSPIRE_DISCOVERY_CACHE_TTL", 300)

# Lineage walks stop here; anything deeper is treated as corrupt data.
MAX_LINEAGE_DEPTH: int = _int_env("THREADSPIRE_MAX_LINEAGE_DEPTH", 1000)

# Open reaction WebSocket subscriptions per API process.
MAX_REACTION_SUBSCRIBERS: int = _int_env("THREADSPIRE_MAX_REACTION_SUBSCRIBERS", 15000)

RUN_MIGRATIONS_ON_STARTUP: bool = _bool_env("RUN_MIGRATIONS_ON_STARTUP", True)

UNKNOWN_CREATOR_NAME = "Unknown Creator"
UNAVAILABLE_THREAD_TITLE = "Unavailable thread"
