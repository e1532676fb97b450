# notification_client/api/users.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from notification_client.api.deps import get_client, http_error
from notification_client.errors import NotificationClientError
from notification_client.services.client import NotificationClient

router = APIRouter(tags=["users"])


class UserIn(BaseModel):
    username: str = ""
    email: str = ""


class PostIn(BaseModel):
    title: str = ""


@router.get("/users")
async def list_users(client: NotificationClient = Depends(get_client)):
    return [u.model_dump() for u in client.users]


@router.post("/users/reload")
async def reload_users(client: NotificationClient = Depends(get_client)):
    try:
        users = await client.load_users()
    except NotificationClientError as e:
        raise http_error(e)
    return [u.model_dump() for u in users]


@router.post("/users")
async def create_user(body: UserIn, client: NotificationClient = Depends(get_client)):
    try:
        user = await client.create_user(body.username, body.email)
    except NotificationClientError as e:
        raise http_error(e)
    return user.model_dump()


@router.get("/users/{user_id}/posts")
async def list_user_posts(user_id: str, client: NotificationClient = Depends(get_client)):
    try:
        posts = await client.load_posts(user_id)
    except NotificationClientError as e:
        raise http_error(e)
    return [p.model_dump(mode="json") for p in posts]


@router.post("/posts")
async def create_post(body: PostIn, client: NotificationClient = Depends(get_client)):
    """Crea un post a nombre del usuario activo."""
    try:
        post = await client.create_post(body.title)
    except NotificationClientError as e:
        raise http_error(e)
    return post.model_dump(mode="json")


# ===== sesión =====

@router.get("/session")
async def get_session(client: NotificationClient = Depends(get_client)):
    user = client.controller.get_active_user()
    return {
        "activeUser": user.model_dump() if user else None,
        "loaded": client.controller.loaded,
    }


@router.put("/session/{user_id}")
async def select_user(user_id: str, client: NotificationClient = Depends(get_client)):
    """
    Cambia el usuario activo: vacía el Store, reenvía identify y
    recarga sus notificaciones.
    """
    try:
        await client.select_user(user_id)
    except NotificationClientError as e:
        raise http_error(e)
    return {
        "activeUser": client.controller.get_active_user().model_dump(),
        "loaded": client.controller.loaded,
        "unreadCount": client.store.unread_count,
    }


@router.delete("/session")
async def clear_session(client: NotificationClient = Depends(get_client)):
    await client.select_user(None)
    return {"activeUser": None}
