from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .. import broadcast
from ..lifecycle import ConnectionLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ws"])


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    lifecycle: ConnectionLifecycleManager = ws.app.state.lifecycle
    await ws.accept()
    conn = lifecycle.open(ws)
    try:
        while True:
            data = await ws.receive_json()
            if not isinstance(data, dict):
                await lifecycle.hub.dispatch(conn, broadcast.server_error("Malformed message."))
                continue
            args = data.get("args") or []
            if not isinstance(args, list):
                args = [args]
            await lifecycle.handle(conn, data.get("type"), args)
    except WebSocketDisconnect:
        pass
    except ValueError as exc:
        # receive_json could not decode the frame
        logger.warning("Closing %s after undecodable frame: %s", conn.sid, exc)
    finally:
        await lifecycle.teardown(conn)
