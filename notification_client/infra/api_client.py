# notification_client/infra/api_client.py
import logging
import os
from typing import Any, Callable, Dict, List, Optional

import httpx

from notification_client.errors import NetworkError, NotFoundError, ValidationError
from notification_client.models.event import Post, PostCreate, TriggerEvent, User, UserCreate, parse_model
from notification_client.models.notification import NotificationRecord, UnreadCount
from notification_client.security.jwt_utils import auth_headers

logger = logging.getLogger(__name__)

API_URL = os.getenv("NOTIFY_API_URL", "http://localhost:5000/api")
HTTP_TIMEOUT = float(os.getenv("NOTIFY_HTTP_TIMEOUT", "10"))


class NotificationApi:
    """
    Cliente REST del servicio de notificaciones.
    Traduce los errores de httpx a NetworkError / NotFoundError / ValidationError
    para que nadie más tenga que conocer httpx.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        acting_user: Optional[Callable[[], Optional[str]]] = None,
        jwt_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or API_URL).rstrip("/")
        self._acting_user = acting_user or (lambda: None)
        self._jwt_secret = jwt_secret
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or HTTP_TIMEOUT,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = auth_headers(self._acting_user(), self._jwt_secret)
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {path} expiró") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path} falló: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"{method} {path}: {_error_detail(response)}")
        if response.status_code in (400, 422):
            raise ValidationError(_error_detail(response))
        if response.is_error:
            raise NetworkError(f"{method} {path} -> {response.status_code}: {_error_detail(response)}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"{method} {path}: respuesta no es JSON") from e

    # ===== notificaciones =====

    async def get_user_notifications(self, user_id: str) -> List[NotificationRecord]:
        """Lista del servidor, ya ordenada de más nueva a más vieja."""
        rows = await self._request("GET", f"/notifications/{user_id}")
        return [_parse_response(NotificationRecord, row) for row in rows or []]

    async def get_unread_count(self, user_id: str) -> int:
        body = await self._request("GET", f"/notifications/{user_id}/count")
        return _parse_response(UnreadCount, body or {}).count

    async def mark_as_read(self, notification_id: str):
        await self._request("PATCH", f"/notifications/{notification_id}/read")

    async def clear_notifications(self, user_id: str):
        await self._request("DELETE", f"/notifications/clear/{user_id}")

    async def trigger_event(self, event: TriggerEvent) -> Optional[Dict[str, Any]]:
        return await self._request("POST", "/events", json=event.model_dump(mode="json"))

    # ===== usuarios y posts =====

    async def list_users(self) -> List[User]:
        rows = await self._request("GET", "/users")
        return [_parse_response(User, row) for row in rows or []]

    async def create_user(self, data: UserCreate) -> User:
        body = await self._request("POST", "/users", json=data.model_dump())
        return _parse_response(User, body)

    async def list_posts(self, user_id: str) -> List[Post]:
        rows = await self._request("GET", "/posts", params={"userId": user_id})
        return [_parse_response(Post, row) for row in rows or []]

    async def create_post(self, data: PostCreate) -> Post:
        body = await self._request("POST", "/posts", json=data.model_dump())
        return _parse_response(Post, body)


def _parse_response(model, payload):
    # una respuesta que no encaja con el modelo es un problema del servidor, no del usuario
    try:
        return parse_model(model, payload)
    except ValidationError as e:
        raise NetworkError(f"Respuesta inválida del servidor: {e}") from e


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)
