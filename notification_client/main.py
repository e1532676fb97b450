# notification_client/main.py
import os
from dotenv import load_dotenv

# 1) cargar variables de entorno del .env
load_dotenv()

import logging
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notification_client.api.deps import get_client
from notification_client.api.events import router as events_router
from notification_client.api.notifications import router as notifications_router, snapshot_message
from notification_client.api.users import router as users_router
from notification_client.api.websocket import router as ws_router
from notification_client.services.client import NotificationClient
from notification_client.services.websocket_manager import WebSocketSurface, ws_manager

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Notification Client Console")

# 2) CORS (la consola puede servirse desde otro origen)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 3) Rutas REST
app.include_router(users_router)
app.include_router(notifications_router)
app.include_router(events_router)
# 4) Ruta WebSocket
app.include_router(ws_router)


@app.get("/status")
async def client_status(client: NotificationClient = Depends(get_client)):
    """Conexión push, usuario activo, si ya cargó y último error."""
    return client.status()


@app.on_event("startup")
async def startup_event():
    # 5) armar el cliente (o usar el que ya dejaron en app.state) y arrancarlo
    client = getattr(app.state, "client", None)
    if client is None:
        client = NotificationClient(surface=WebSocketSurface(ws_manager))
        app.state.client = client

    client.store.subscribe(lambda store: ws_manager.broadcast_soon(snapshot_message(client)))
    await client.start()


@app.on_event("shutdown")
async def shutdown_event():
    client = getattr(app.state, "client", None)
    if client is not None:
        await client.stop()
