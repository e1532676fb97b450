# notification_client/services/websocket_manager.py
import asyncio
import logging
from typing import Set

from fastapi import WebSocket

from notification_client.services.notification_surface import NotificationSurface

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Conexiones WebSocket de la consola local (tabs, ventanas...).
    Todas ven al mismo usuario activo, así que no se agrupan por usuario.
    """
    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.add(websocket)

    def disconnect(self, websocket: WebSocket):
        self.active_connections.discard(websocket)

    async def broadcast(self, message: dict):
        """Envía el mensaje a TODAS las conexiones abiertas."""
        dead_sockets = []
        for ws in list(self.active_connections):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug("[console] Socket muerto: %s", e)
                dead_sockets.append(ws)
        # limpiar sockets muertos
        for ws in dead_sockets:
            self.active_connections.discard(ws)

    def broadcast_soon(self, message: dict):
        """broadcast sin esperar; para llamar desde código síncrono."""
        if not self.active_connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.broadcast(message))
        _pending.add(task)
        task.add_done_callback(_pending.discard)


# referencias a los broadcasts en curso para que no los junte el GC
_pending: Set[asyncio.Task] = set()


class WebSocketSurface(NotificationSurface):
    """
    Los avisos del sistema se mandan a la consola como
    {"event": "alert", "title": ..., "content": ...}.
    """

    def __init__(self, manager: WebSocketManager, permission=None):
        super().__init__(permission)
        self.manager = manager

    def _ask(self):
        self.manager.broadcast_soon({"event": "permission_request"})

    def notify(self, title: str, content: str):
        self.manager.broadcast_soon({"event": "alert", "title": title, "content": content})


# instancia global
ws_manager = WebSocketManager()
