# notification_client/infra/push_transport.py
import asyncio
import inspect
import json
import logging
import os
from enum import Enum
from typing import Any, Callable, List, Optional

import pydantic
import websockets
from websockets.exceptions import WebSocketException

from notification_client.errors import TransportError
from notification_client.models.push_message import IDENTIFY, NEW_NOTIFICATION, PushMessage

logger = logging.getLogger(__name__)

# ====== env ======
PUSH_URL = os.getenv("NOTIFY_PUSH_URL", "ws://localhost:5000/ws/notifications")
RECONNECT_BACKOFF = float(os.getenv("NOTIFY_RECONNECT_BACKOFF", "5"))  # segundos
OPEN_TIMEOUT = float(os.getenv("NOTIFY_OPEN_TIMEOUT", "10"))


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def _default_connector(url: str):
    return websockets.connect(url, open_timeout=OPEN_TIMEOUT)


class ConnectionHandle:
    """Lo que recibe quien llama a connect(): estado y espera de conexión."""

    def __init__(self, transport: "PushTransport"):
        self._transport = transport

    @property
    def state(self) -> ConnectionState:
        return self._transport.state

    @property
    def connected(self) -> bool:
        return self._transport.state == ConnectionState.CONNECTED

    async def wait_connected(self, timeout: Optional[float] = None):
        await asyncio.wait_for(self._transport._connected.wait(), timeout)


class PushTransport:
    """
    Una sola conexión push por cliente.
      - Reconecta con backoff si se cae; los consumidores solo ven los
        cambios de estado, no los reintentos.
      - Recuerda el último identify y lo reenvía después de cada conexión.
      - Entrega cada `new_notification` a los handlers tal cual llega,
        sin deduplicar (eso es del Reconciler).
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        connector: Optional[Callable[[str], Any]] = None,
        backoff: Optional[float] = None,
    ):
        self.url = url or PUSH_URL
        self.backoff = RECONNECT_BACKOFF if backoff is None else backoff
        self.state = ConnectionState.DISCONNECTED
        self._connector = connector or _default_connector
        self._notification_handlers: List[Callable] = []
        self._state_handlers: List[Callable[[ConnectionState], None]] = []
        self._identity: Optional[str] = None
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._closing = False
        self._connected = asyncio.Event()

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    def on_notification(self, handler: Callable):
        self._notification_handlers.append(handler)
        return handler

    def on_state_change(self, handler: Callable[[ConnectionState], None]):
        self._state_handlers.append(handler)
        return handler

    async def connect(self) -> ConnectionHandle:
        if self._task is None or self._task.done():
            self._closing = False
            self._task = asyncio.create_task(self._run())
        return ConnectionHandle(self)

    async def identify(self, user_id: Optional[str]):
        """
        Asocia la conexión a `user_id`. Si todavía no hay conexión queda
        guardado y se manda al conectar. None suelta la asociación.
        """
        self._identity = user_id
        if user_id is None:
            return
        if self._ws is not None and self.state == ConnectionState.CONNECTED:
            try:
                await self._send_identify(self._ws)
            except (OSError, WebSocketException) as e:
                # el loop reconecta y reenvía el identify guardado
                err = TransportError(str(e) or e.__class__.__name__)
                logger.warning("[transport] identify %s no se pudo enviar -> %s", user_id, err)
        else:
            logger.debug("[transport] identify %s en espera de conexión", user_id)

    async def disconnect(self):
        self._closing = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._set_state(ConnectionState.DISCONNECTED)

    # ===== loop interno =====

    async def _run(self):
        while not self._closing:
            self._set_state(ConnectionState.CONNECTING)
            try:
                logger.info("[transport] Conectando a %s", self.url)
                async with self._connector(self.url) as ws:
                    self._ws = ws
                    self._set_state(ConnectionState.CONNECTED)
                    logger.info("[transport] Conectado")
                    if self._identity:
                        await self._send_identify(ws)
                    async for raw in ws:
                        await self._dispatch(raw)
                logger.info("[transport] El servidor cerró la conexión")
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                err = TransportError(str(e) or e.__class__.__name__)
                logger.warning("[transport] Conexión perdida, reintento en %ss -> %s", self.backoff, err)
            finally:
                self._ws = None
                self._set_state(ConnectionState.DISCONNECTED)

            if self._closing:
                break
            await asyncio.sleep(self.backoff)

    async def _send_identify(self, ws):
        message = PushMessage(event=IDENTIFY, data=self._identity)
        await ws.send(json.dumps(message.model_dump()))
        logger.info("[transport] identify enviado para %s", self._identity)

    async def _dispatch(self, raw):
        try:
            message = PushMessage.model_validate_json(raw)
        except pydantic.ValidationError as e:
            # best-effort: mensaje roto se descarta sin reintento
            logger.warning("[transport] Mensaje push inválido descartado: %s", e)
            return

        if message.event != NEW_NOTIFICATION:
            logger.debug("[transport] Evento ignorado: %s", message.event)
            return

        for handler in list(self._notification_handlers):
            try:
                result = handler(message.data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("[transport] Error en handler de notificación")

    def _set_state(self, state: ConnectionState):
        if state == self.state:
            return
        self.state = state
        if state == ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

        for handler in list(self._state_handlers):
            try:
                handler(state)
            except Exception:
                logger.exception("[transport] Error en handler de estado")
