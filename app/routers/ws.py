"""WebSocket router: /ws/incidents."""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.realtime import connection_manager

router = APIRouter(tags=["ws"])


@router.websocket("/ws/incidents")
async def ws_incidents(websocket: WebSocket):
    """Incidents WS: on connect send the feed snapshot; then stream incident_change messages."""
    await websocket.accept()
    await connection_manager.connect(websocket)
    try:
        feed = websocket.app.state.ctx.feed
        await websocket.send_json({
            "type": "snapshot",
            "version": feed.version,
            "payload": [i.model_dump(mode="json") for i in feed.snapshot()],
        })
        while True:
            try:
                _ = await websocket.receive_text()
            except WebSocketDisconnect:
                break
    finally:
        await connection_manager.disconnect(websocket)
