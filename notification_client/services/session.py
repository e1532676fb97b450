# notification_client/services/session.py
import logging
from typing import TYPE_CHECKING, Iterable, Optional

from notification_client.errors import NotificationClientError
from notification_client.models.event import User

if TYPE_CHECKING:
    from notification_client.infra.push_transport import PushTransport
    from notification_client.services.reconciler import Reconciler

logger = logging.getLogger(__name__)


class Session:
    """
    Usuario activo + época. La época sube en cada activate/deactivate;
    todo lo que estaba en vuelo con una época vieja se descarta.
    """

    def __init__(self):
        self.active_user: Optional[User] = None
        self.epoch = 0

    @property
    def active_user_id(self) -> Optional[str]:
        return self.active_user.id if self.active_user else None

    def activate(self, user: User) -> int:
        self.active_user = user
        self.epoch += 1
        return self.epoch

    def deactivate(self) -> int:
        self.active_user = None
        self.epoch += 1
        return self.epoch

    def is_current(self, epoch: int) -> bool:
        return epoch == self.epoch


class SessionController:
    """
    Dueño del "usuario actual". Es el único que llama a transport.identify.
    """

    def __init__(self, session: Session, transport: "PushTransport", reconciler: "Reconciler"):
        self.session = session
        self.transport = transport
        self.reconciler = reconciler
        self.loaded = False
        self.last_error: Optional[str] = None

    def get_active_user(self) -> Optional[User]:
        return self.session.active_user

    async def select_user(self, user: Optional[User]):
        if user is None:
            await self.deactivate()
            return

        current = self.session.active_user
        if current is not None and current.id == user.id:
            return

        epoch = self.session.activate(user)
        self.loaded = False
        self.last_error = None
        logger.info("[session] Usuario activo: %s (época %s)", user.id, epoch)

        await self.reconciler.reset(epoch)
        if not self.session.is_current(epoch):
            # otro select_user ganó mientras se vaciaba el Store
            return
        await self.transport.identify(user.id)
        try:
            applied = await self.reconciler.activate(epoch, user.id)
        except NotificationClientError as e:
            if self.session.is_current(epoch):
                self.last_error = str(e)
            raise

        if applied and self.session.is_current(epoch):
            self.loaded = True

    async def deactivate(self):
        epoch = self.session.deactivate()
        self.loaded = False
        self.last_error = None
        logger.info("[session] Sin usuario activo (época %s)", epoch)
        await self.reconciler.reset(epoch)
        await self.transport.identify(None)

    async def users_available(self, users: Iterable[User]):
        """Si no hay nadie activo, selecciona el primero de la lista."""
        if self.session.active_user is not None:
            return
        first = next(iter(users), None)
        if first is not None:
            await self.select_user(first)
