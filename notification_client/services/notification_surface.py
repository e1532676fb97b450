# notification_client/services/notification_surface.py
import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

ALERTS_PERMISSION = os.getenv("NOTIFY_ALERTS", "default")


class AlertPermission(str, Enum):
    DEFAULT = "default"   # todavía no se preguntó
    GRANTED = "granted"
    DENIED = "denied"


class NotificationSurface(ABC):
    """
    Aviso del sistema (tipo notificación del navegador/SO).
    El Reconciler solo llama a notify() si `granted`; notify no debe bloquear.
    """

    def __init__(self, permission: Optional[str] = None):
        self.permission = AlertPermission(permission or ALERTS_PERMISSION)

    @property
    def granted(self) -> bool:
        return self.permission == AlertPermission.GRANTED

    def set_permission(self, permission: str):
        self.permission = AlertPermission(permission)
        logger.info("[surface] Permiso de avisos: %s", self.permission.value)

    def request_permission(self):
        """Solo pregunta si todavía no hay respuesta."""
        if self.permission != AlertPermission.DEFAULT:
            return
        self._ask()

    def _ask(self):
        """
        Hook opcional para pedir permiso al usuario. La respuesta llega
        después por set_permission(); sin hook el permiso sigue en `default`.
        """

    @abstractmethod
    def notify(self, title: str, content: str):
        """Muestra el aviso. No debe bloquear."""


class LogSurface(NotificationSurface):
    """Para correr sin consola: el aviso va al log."""

    def notify(self, title: str, content: str):
        logger.info("[surface] 🔔 %s: %s", title, content)
