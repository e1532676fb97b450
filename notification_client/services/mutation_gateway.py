# notification_client/services/mutation_gateway.py
import logging

from notification_client.errors import NotificationClientError
from notification_client.infra.api_client import NotificationApi
from notification_client.services.reconciler import Reconciler
from notification_client.services.session import Session

logger = logging.getLogger(__name__)


class MutationGateway:
    """
    mark-read y clear-all optimistas: primero el Store local, después el
    servidor. Si el servidor falla el cambio local NO se deshace; el error
    se propaga solo para informarlo.
    """

    def __init__(self, session: Session, reconciler: Reconciler, api: NotificationApi):
        self.session = session
        self.reconciler = reconciler
        self.api = api

    async def request_mark_read(self, notification_id: str):
        """Lanza NetworkError o NotFoundError."""
        await self.reconciler.apply_local_read(notification_id)
        try:
            await self.api.mark_as_read(notification_id)
        except NotificationClientError as e:
            logger.error("[gateway] No se pudo marcar %s como leída: %s", notification_id, e)
            raise

    async def request_clear_all(self):
        """Lanza NetworkError."""
        user_id = self.session.active_user_id
        if user_id is None:
            return
        await self.reconciler.apply_local_clear()
        try:
            await self.api.clear_notifications(user_id)
        except NotificationClientError as e:
            logger.error("[gateway] No se pudieron borrar las notificaciones de %s: %s", user_id, e)
            raise
        logger.info("[gateway] Notificaciones de %s borradas", user_id)
