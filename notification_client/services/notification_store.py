# notification_client/services/notification_store.py
import logging
from typing import Callable, Dict, Iterable, List, Optional

from notification_client.models.notification import NotificationRecord

logger = logging.getLogger(__name__)


class NotificationStore:
    """
    Notificaciones del usuario activo, de más nueva a más vieja.

    El contador de no leídas se calcula siempre desde los registros:
    no existe un contador aparte que se pueda desincronizar.

    No es seguro llamar a esto desde dos corutinas a la vez sin pasar
    por MutationQueue; los métodos en sí no hacen I/O.
    """

    def __init__(self):
        self._records: List[NotificationRecord] = []
        self._index: Dict[str, NotificationRecord] = {}
        self._listeners: List[Callable[["NotificationStore"], None]] = []

    # ===== lectura =====

    def snapshot(self) -> List[NotificationRecord]:
        return list(self._records)

    def get(self, notification_id: str) -> Optional[NotificationRecord]:
        return self._index.get(notification_id)

    @property
    def unread_count(self) -> int:
        return sum(1 for r in self._records if r.is_unread)

    def __len__(self):
        return len(self._records)

    def __contains__(self, notification_id) -> bool:
        return notification_id in self._index

    # ===== mutaciones =====

    def replace_all(self, records: Iterable[NotificationRecord]):
        """Reemplaza todo. Respeta el orden del servidor; ids repetidos: gana el primero."""
        new_records: List[NotificationRecord] = []
        new_index: Dict[str, NotificationRecord] = {}
        for record in records:
            if record.id in new_index:
                continue
            new_index[record.id] = record
            new_records.append(record)

        self._records = new_records
        self._index = new_index
        self._changed()

    def upsert(self, record: NotificationRecord) -> bool:
        """
        Inserta al principio si el id no existe (devuelve True).
        Si existe lo reemplaza en su lugar, salvo que el entrante esté
        "menos leído": leído es pegajoso.
        """
        existing = self._index.get(record.id)
        if existing is None:
            self._records.insert(0, record)
            self._index[record.id] = record
            self._changed()
            return True

        if record.is_less_read_than(existing) or record == existing:
            return False

        position = self._records.index(existing)
        self._records[position] = record
        self._index[record.id] = record
        self._changed()
        return False

    def mark_read(self, notification_id: str) -> bool:
        # id desconocido o ya leído: no pasa nada
        existing = self._index.get(notification_id)
        if existing is None or not existing.is_unread:
            return False

        updated = existing.mark_read()
        position = self._records.index(existing)
        self._records[position] = updated
        self._index[notification_id] = updated
        self._changed()
        return True

    def clear_all(self):
        self._records = []
        self._index = {}
        self._changed()

    # ===== listeners =====

    def subscribe(self, listener: Callable[["NotificationStore"], None]):
        self._listeners.append(listener)
        return listener

    def _changed(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("[store] Error en listener")
