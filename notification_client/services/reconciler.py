# notification_client/services/reconciler.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Set, Tuple

from notification_client.errors import NotificationClientError, ValidationError
from notification_client.infra.api_client import NotificationApi
from notification_client.models.event import parse_model
from notification_client.models.notification import NotificationRecord
from notification_client.services.mutation_queue import MutationQueue, StaleMutation
from notification_client.services.notification_store import NotificationStore
from notification_client.services.notification_surface import NotificationSurface
from notification_client.services.session import Session

logger = logging.getLogger(__name__)


@dataclass
class _Tracking:
    # lo que pasó localmente durante una sesión y hay que respetar
    # cuando llega un fetch que salió antes
    epoch: int
    push_seq: int = 0
    pushed: List[Tuple[int, NotificationRecord]] = field(default_factory=list)
    inflight: List[int] = field(default_factory=list)
    read_ids: Set[str] = field(default_factory=set)
    clears: int = 0


class Reconciler:
    """
    Traduce fetches y pushes a operaciones del Store.

    Fetch y push pueden llegar en cualquier orden: los pushes recibidos
    mientras un fetch estaba en vuelo y los ids marcados como leídos se
    vuelven a aplicar encima del snapshot, así el resultado no depende
    de quién llegó primero.
    """

    def __init__(
        self,
        session: Session,
        store: NotificationStore,
        queue: MutationQueue,
        api: NotificationApi,
        surface: Optional[NotificationSurface] = None,
    ):
        self.session = session
        self.store = store
        self.queue = queue
        self.api = api
        self.surface = surface
        self._tracking = _Tracking(epoch=session.epoch)

    def _current_tracking(self, epoch: int) -> Optional[_Tracking]:
        if not self.session.is_current(epoch):
            return None
        if self._tracking.epoch != epoch:
            self._tracking = _Tracking(epoch=epoch)
        return self._tracking

    # ===== sesión =====

    async def reset(self, epoch: int):
        """Vacía el Store para la sesión nueva."""
        self._tracking = _Tracking(epoch=epoch)
        try:
            await self.queue.submit(epoch, self.store.clear_all)
        except StaleMutation:
            pass

    async def activate(self, epoch: int, user_id: str) -> bool:
        """
        Fetch inicial de la sesión. Devuelve False si el resultado llegó
        tarde (la sesión ya cambió) y se descartó. Lanza NetworkError si falla;
        el Store queda como estaba.
        """
        return await self._fetch(epoch, user_id)

    async def refresh(self) -> bool:
        user_id = self.session.active_user_id
        if user_id is None:
            return False
        return await self._fetch(self.session.epoch, user_id)

    async def _fetch(self, epoch: int, user_id: str) -> bool:
        tracking = self._current_tracking(epoch)
        if tracking is None:
            return False

        start = tracking.push_seq
        clears = tracking.clears
        tracking.inflight.append(start)
        try:
            # el conteo del servidor es solo diagnóstico: si falla, la lista igual se aplica
            records, server_count = await asyncio.gather(
                self.api.get_user_notifications(user_id),
                self.api.get_unread_count(user_id),
                return_exceptions=True,
            )
        finally:
            tracking.inflight.remove(start)

        if isinstance(records, BaseException):
            if isinstance(records, NotificationClientError):
                logger.error("[reconciler] Error cargando notificaciones de %s: %s", user_id, records)
            self._trim(tracking)
            raise records
        if isinstance(server_count, NotificationClientError):
            logger.warning("[reconciler] No se pudo leer el conteo de %s: %s", user_id, server_count)
            server_count = None
        elif isinstance(server_count, BaseException):
            raise server_count

        if not self.session.is_current(epoch):
            logger.info("[reconciler] Fetch de %s descartado: la sesión cambió", user_id)
            return False
        if tracking.clears != clears:
            logger.info("[reconciler] Fetch de %s descartado: hubo clear-all mientras tanto", user_id)
            self._trim(tracking)
            return False

        fetched_unread = sum(1 for r in records if r.is_unread)
        if server_count is not None and fetched_unread != server_count:
            logger.warning(
                "[reconciler] El servidor dice %s no leídas pero la lista trae %s",
                server_count, fetched_unread,
            )

        pushed = [record for seq, record in tracking.pushed if seq >= start]
        try:
            await self.queue.submit(epoch, self._apply_snapshot, records, pushed, set(tracking.read_ids))
        except StaleMutation:
            return False
        finally:
            self._trim(tracking)

        logger.info("[reconciler] %s notificaciones cargadas para %s", len(records), user_id)
        return True

    def _apply_snapshot(self, records, pushed, read_ids):
        self.store.replace_all(records)
        for record in pushed:
            self.store.upsert(record)
        for notification_id in read_ids:
            self.store.mark_read(notification_id)

    def _trim(self, tracking: _Tracking):
        # solo hace falta guardar lo que algún fetch en vuelo todavía no vio
        if not tracking.inflight:
            tracking.pushed.clear()
            tracking.read_ids.clear()
            return
        oldest = min(tracking.inflight)
        tracking.pushed = [(seq, r) for seq, r in tracking.pushed if seq >= oldest]

    # ===== push =====

    async def handle_push(self, payload: Any) -> bool:
        """
        Procesa un `new_notification`. Devuelve True si era nueva.
        Un payload roto se descarta: el próximo fetch lo recupera.
        """
        try:
            record = parse_model(NotificationRecord, payload)
        except ValidationError as e:
            logger.warning("[reconciler] Push descartado, payload inválido: %s", e)
            return False

        user_id = self.session.active_user_id
        if user_id is None:
            logger.info("[reconciler] Push %s descartado: no hay usuario activo", record.id)
            return False
        if record.userId and record.userId != user_id:
            logger.info("[reconciler] Push %s era para %s, no para %s", record.id, record.userId, user_id)
            return False

        epoch = self.session.epoch
        tracking = self._current_tracking(epoch)
        tracking.push_seq += 1
        if tracking.inflight:
            tracking.pushed.append((tracking.push_seq, record))

        try:
            inserted = await self.queue.submit(epoch, self.store.upsert, record)
        except StaleMutation:
            return False

        if inserted:
            self._alert(record)
        return inserted

    def _alert(self, record: NotificationRecord):
        # aviso del sistema: fire-and-forget, nunca afecta al Store
        surface = self.surface
        if surface is None or not surface.granted:
            return
        try:
            surface.notify(record.title, record.content)
        except Exception:
            logger.exception("[reconciler] No se pudo mostrar el aviso de %s", record.id)

    # ===== mutaciones locales (MutationGateway) =====

    async def apply_local_read(self, notification_id: str) -> bool:
        epoch = self.session.epoch
        tracking = self._current_tracking(epoch)
        if tracking.inflight:
            tracking.read_ids.add(notification_id)
        try:
            return await self.queue.submit(epoch, self.store.mark_read, notification_id)
        except StaleMutation:
            return False

    async def apply_local_clear(self):
        epoch = self.session.epoch
        tracking = self._current_tracking(epoch)
        tracking.clears += 1
        tracking.pushed.clear()
        tracking.read_ids.clear()
        try:
            await self.queue.submit(epoch, self.store.clear_all)
        except StaleMutation:
            pass
