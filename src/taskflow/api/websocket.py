"""WebSocket API endpoint for the task change feed."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from taskflow.factory import get_connection_manager, get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def task_events(websocket: WebSocket) -> None:
    """Push store events (tasks_changed, error) to the client.

    A client that connects while an error is pending receives it first,
    so it does not miss a failure reported before it joined.
    """
    connection_manager = get_connection_manager()
    await connection_manager.connect(websocket)
    try:
        pending_error = get_store().error
        if pending_error:
            await websocket.send_json({"type": "error", "message": pending_error})

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
            else:
                logger.debug(f"[WebSocket] Ignoring client message: {data}")

    except WebSocketDisconnect:
        logger.info("[WebSocket] Client disconnected")
        connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"[WebSocket] Error: {e}", exc_info=True)
        connection_manager.disconnect(websocket)
