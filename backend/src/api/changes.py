# pyright: reportMissingTypeStubs=false
"""
Change event stream.

Clients keep a WebSocket open and re-run their availability query whenever
an event for a table they display arrives. Events carry no row data.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from auth.dependencies import authenticate_token
from core.constants import RESERVATIONS_TABLE, RESOURCE_KINDS_TABLE
from services.change_notifier import change_notifier

logger = logging.getLogger(__name__)

router = APIRouter()

_SUBSCRIBABLE_TABLES = {RESERVATIONS_TABLE, RESOURCE_KINDS_TABLE}


@router.websocket("/changes/ws")
async def change_stream(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    tables: Optional[str] = Query(None, description="Comma-separated table names, defaults to all"),
):
    user = authenticate_token(token)
    if not user:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    requested = {t.strip() for t in tables.split(",") if t.strip()} if tables else set(_SUBSCRIBABLE_TABLES)
    unknown = requested - _SUBSCRIBABLE_TABLES
    if unknown or not requested:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # Subscribe before accepting so no event after the handshake is missed
    subscription = change_notifier.subscribe(requested)
    await websocket.accept()
    logger.info(f"Change stream opened for {user.owner_id} on {sorted(requested)}")

    # Client messages are ignored; a disconnect surfaces through the receiver task
    receiver = asyncio.create_task(websocket.receive_text())
    try:
        while True:
            event_task = asyncio.create_task(subscription.get())
            done, _ = await asyncio.wait({event_task, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if event_task in done:
                await websocket.send_json(event_task.result().to_dict())
            else:
                event_task.cancel()
            if receiver in done:
                receiver.result()
                receiver = asyncio.create_task(websocket.receive_text())
    except WebSocketDisconnect:
        logger.info(f"Change stream closed for {user.owner_id}")
    finally:
        receiver.cancel()
        subscription.close()
