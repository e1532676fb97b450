# notification_client/services/client.py
import logging
from typing import Dict, List, Optional

from notification_client.errors import NotFoundError, NotificationClientError, ValidationError
from notification_client.infra.api_client import NotificationApi
from notification_client.infra.push_transport import ConnectionHandle, ConnectionState, PushTransport
from notification_client.models.event import EventType, Post, PostCreate, TriggerEvent, User, UserCreate, parse_model
from notification_client.services.mutation_gateway import MutationGateway
from notification_client.services.mutation_queue import MutationQueue
from notification_client.services.notification_store import NotificationStore
from notification_client.services.notification_surface import LogSurface, NotificationSurface
from notification_client.services.reconciler import Reconciler
from notification_client.services.session import Session, SessionController

logger = logging.getLogger(__name__)


class NotificationClient:
    """
    Arma todas las piezas para una sesión de cliente:
    Session -> Store/Queue -> Reconciler -> SessionController / MutationGateway,
    con el transporte push enchufado al Reconciler.
    """

    def __init__(
        self,
        api: Optional[NotificationApi] = None,
        transport: Optional[PushTransport] = None,
        surface: Optional[NotificationSurface] = None,
    ):
        self.session = Session()
        self.api = api or NotificationApi(acting_user=lambda: self.session.active_user_id)
        self.transport = transport or PushTransport()
        self.surface = surface or LogSurface()
        self.store = NotificationStore()
        self.queue = MutationQueue(self.session)
        self.reconciler = Reconciler(self.session, self.store, self.queue, self.api, self.surface)
        self.controller = SessionController(self.session, self.transport, self.reconciler)
        self.gateway = MutationGateway(self.session, self.reconciler, self.api)

        self.users: List[User] = []
        self.posts: Dict[str, List[Post]] = {}
        self.connection: Optional[ConnectionHandle] = None
        self.last_error: Optional[str] = None

        self.transport.on_notification(self.reconciler.handle_push)

    # ===== ciclo de vida =====

    async def start(self):
        self.queue.start()
        self.connection = await self.transport.connect()
        self.surface.request_permission()
        try:
            await self.load_users()
        except NotificationClientError as e:
            logger.error("[client] Error cargando usuarios: %s", e)
            self.last_error = "Failed to load users"

    async def stop(self):
        await self.transport.disconnect()
        await self.queue.stop()
        await self.api.aclose()

    @property
    def connected(self) -> bool:
        return self.transport.state == ConnectionState.CONNECTED

    def status(self) -> dict:
        user = self.controller.get_active_user()
        return {
            "connected": self.connected,
            "connection": self.transport.state.value,
            "activeUser": user.model_dump() if user else None,
            "loaded": self.controller.loaded,
            "unreadCount": self.store.unread_count,
            "lastError": self.controller.last_error or self.last_error,
        }

    # ===== usuarios =====

    async def load_users(self) -> List[User]:
        self.users = await self.api.list_users()
        self.last_error = None
        await self.controller.users_available(self.users)
        return self.users

    async def create_user(self, username: str, email: str) -> User:
        data = parse_model(UserCreate, {"username": username, "email": email})
        user = await self.api.create_user(data)
        self.users.append(user)
        await self.controller.users_available(self.users)
        return user

    def find_user(self, user_id: str) -> User:
        for user in self.users:
            if user.id == user_id:
                return user
        raise NotFoundError(f"Usuario {user_id} no existe")

    async def select_user(self, user_id: Optional[str]):
        user = self.find_user(user_id) if user_id else None
        await self.controller.select_user(user)

    # ===== posts =====

    async def load_posts(self, user_id: str) -> List[Post]:
        posts = await self.api.list_posts(user_id)
        self.posts[user_id] = posts
        return posts

    async def create_post(self, title: str) -> Post:
        user = self._require_user()
        data = parse_model(PostCreate, {"title": title, "userId": user.id})
        post = await self.api.create_post(data)
        self.posts.setdefault(user.id, []).append(post)
        return post

    # ===== eventos =====

    async def trigger_event(
        self,
        event_type: str,
        target_user_id: str,
        entity_id: str = "",
        comment_text: str = "",
    ) -> TriggerEvent:
        """Valida como el formulario y manda POST /events. Lanza ValidationError / NetworkError."""
        source = self._require_user()

        posts: List[Post] = []
        if target_user_id and event_type in (EventType.LIKE.value, EventType.COMMENT.value):
            posts = await self.load_posts(target_user_id)

        event = TriggerEvent.compose(
            event_type,
            source.id,
            target_user_id,
            entity_id=entity_id,
            comment_text=comment_text,
            target_posts=posts,
        )
        await self.api.trigger_event(event)
        logger.info("[client] Evento %s disparado hacia %s", event.type.value, target_user_id)
        return event

    def _require_user(self) -> User:
        user = self.controller.get_active_user()
        if user is None:
            raise ValidationError("No hay usuario activo")
        return user
