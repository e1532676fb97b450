# notification_client/api/websocket.py
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from notification_client.api.notifications import snapshot_message
from notification_client.services.websocket_manager import ws_manager

router = APIRouter(tags=["websocket"])


@router.websocket("/ws/notifications")
async def websocket_notifications(websocket: WebSocket):
    """
    Feed en vivo para la consola:
      ws://localhost:8000/ws/notifications
    Al conectar recibe el snapshot actual; después un "snapshot" por cada
    cambio del Store y un "alert" por cada aviso.
    """
    client = websocket.app.state.client

    # 1. Registrar conexión
    await ws_manager.connect(websocket)
    await websocket.send_json(snapshot_message(client))

    try:
        # 2. Mantener la conexión viva
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_manager.disconnect(websocket)
