"""System endpoints (health, config)."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter

from .. import models, schemas
from ..settings import MAX_PAGE_SIZE, MAX_TAG_LENGTH, MAX_TAGS_PER_THREAD, SNIPPET_LENGTH

router = APIRouter(prefix="", tags=["System"])
logger = logging.getLogger(__name__)

# Global startup time for uptime calculation
_STARTUP_TIME = time.time()


@router.get("/health", response_model=schemas.HealthResponse)
def get_health() -> schemas.HealthResponse:
    """Liveness check."""
    uptime_s = time.time() - _STARTUP_TIME
    return schemas.HealthResponse(status="ok", uptime_s=uptime_s)


@router.get("/config", response_model=schemas.Config)
def get_public_config() -> schemas.Config:
    """Limits and reaction types the client needs to build its forms."""
    return schemas.Config(
        reaction_types=[reaction.value for reaction in models.ReactionType],
        max_tags_per_thread=MAX_TAGS_PER_THREAD,
        max_tag_length=MAX_TAG_LENGTH,
        snippet_length=SNIPPET_LENGTH,
        max_page_size=MAX_PAGE_SIZE,
    )
