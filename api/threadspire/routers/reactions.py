"""Reaction endpoints, including the live count subscription."""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .. import schemas
from ..auth import decode_user_id, get_current_user_id_optional
from ..deps import get_db
from ..errors import ThreadSpireError
from ..realtime import reaction_hub
from ..services import reactions
from ..settings import MAX_REACTION_SUBSCRIBERS

router = APIRouter(prefix="/thread", tags=["Reactions"])
logger = logging.getLogger(__name__)


@router.get("/{id}/reactions", response_model=schemas.ReactionTotals)
def get_reactions(
    id: UUID,
    segment_id: UUID | None = Query(None),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ReactionTotals:
    """
    Reaction counts for a thread, or for one segment with ``segment_id``.

    Every reaction type is present in ``counts``. ``mine`` holds the caller's
    reaction, if any.
    """
    return reactions.get_reaction_totals(db, id, user_id, segment_id)


@router.get("/{id}/reactions/users", response_model=list[schemas.ReactionUser])
def get_reaction_users(
    id: UUID,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> list[schemas.ReactionUser]:
    return reactions.get_reaction_users(db, id, user_id, limit=limit)


@router.put("/{id}/reactions/{emoji}", response_model=schemas.ReactionTotals)
def add_reaction(
    id: UUID,
    emoji: str,
    segment_id: UUID | None = Query(None),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ReactionTotals:
    """
    React with ``emoji``.

    Sending the reaction you already hold removes it; sending a different one
    replaces it.
    """
    reaction_type = reactions.parse_reaction_type(emoji)
    return reactions.add_reaction(db, id, reaction_type, user_id, segment_id)


@router.delete("/{id}/reactions/{emoji}", response_model=schemas.ReactionTotals)
def remove_reaction(
    id: UUID,
    emoji: str,
    segment_id: UUID | None = Query(None),
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_current_user_id_optional),
) -> schemas.ReactionTotals:
    reaction_type = reactions.parse_reaction_type(emoji)
    return reactions.remove_reaction(db, id, reaction_type, user_id, segment_id)


@router.websocket("/{id}/reactions/ws")
async def reaction_updates(
    websocket: WebSocket,
    id: UUID,
    segment_id: UUID | None = Query(None),
    token: str | None = Query(None),
    db: Session = Depends(get_db),
):
    """
    Stream reaction counts for a thread or segment.

    The current counts are sent on connect, then a fresh snapshot after every
    change. Pass ``token`` to subscribe to a private thread.

    The database session is only used for the initial read. Later snapshots
    come from the hub, so an idle subscriber holds no pooled connection.
    """
    user_id = None
    if token:
        try:
            user_id = decode_user_id(token)
        except HTTPException:
            db.close()
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
            return

    if reaction_hub.listener_count() >= MAX_REACTION_SUBSCRIBERS:
        db.close()
        logger.warning(f"Reaction subscriber limit reached ({MAX_REACTION_SUBSCRIBERS}), rejecting connection")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Connection limit reached")
        return

    try:
        counts = await run_in_threadpool(reactions.get_reaction_counts, db, id, user_id, segment_id)
    except ThreadSpireError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
        return
    finally:
        # Hand the connection back to the pool before the socket goes idle.
        await run_in_threadpool(db.close)

    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = reaction_hub.subscribe(
        id, segment_id, lambda snapshot: loop.call_soon_threadsafe(queue.put_nowait, snapshot)
    )

    async def watch_disconnect():
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            queue.put_nowait(None)

    watcher = asyncio.create_task(watch_disconnect())
    logger.info(f"Reaction subscriber connected to thread {id}. Listeners: {reaction_hub.listener_count()}")

    try:
        while counts is not None:
            await websocket.send_json(
                {
                    "thread_id": str(id),
                    "segment_id": str(segment_id) if segment_id else None,
                    "counts": counts,
                }
            )
            counts = await queue.get()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        watcher.cancel()
        logger.info(f"Reaction subscriber left thread {id}")
