# notification_client/api/notifications.py
from fastapi import APIRouter, Depends, HTTPException, status

from notification_client.api.deps import get_client, http_error
from notification_client.errors import NotificationClientError
from notification_client.models.notification import NotificationRecord
from notification_client.services.client import NotificationClient
from notification_client.services.notification_surface import AlertPermission

router = APIRouter(prefix="/notifications", tags=["notifications"])


def serialize_notification(record: NotificationRecord) -> dict:
    data = record.model_dump(mode="json")
    data["timeAgo"] = record.time_ago()
    return data


def snapshot_message(client: NotificationClient) -> dict:
    """Lo que ve la consola: la lista en orden y el contador derivado."""
    return {
        "event": "snapshot",
        "notifications": [serialize_notification(r) for r in client.store.snapshot()],
        "unreadCount": client.store.unread_count,
    }


@router.get("")
async def list_notifications(client: NotificationClient = Depends(get_client)):
    message = snapshot_message(client)
    return {
        "notifications": message["notifications"],
        "unreadCount": message["unreadCount"],
    }


@router.post("/refresh")
async def refresh_notifications(client: NotificationClient = Depends(get_client)):
    """Vuelve a pedir la lista completa del usuario activo."""
    if client.session.active_user is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No active user")
    try:
        applied = await client.reconciler.refresh()
    except NotificationClientError as e:
        raise http_error(e)
    return {"ok": True, "applied": applied, "unreadCount": client.store.unread_count}


@router.post("/{notification_id}/read")
async def mark_notification_as_read(notification_id: str, client: NotificationClient = Depends(get_client)):
    """
    Marca como leída. El cambio local se aplica siempre;
    si el servidor falla se informa el error pero no se deshace.
    """
    try:
        await client.gateway.request_mark_read(notification_id)
    except NotificationClientError as e:
        raise http_error(e)
    return {"ok": True, "unreadCount": client.store.unread_count}


@router.delete("")
async def clear_notifications(client: NotificationClient = Depends(get_client)):
    if client.session.active_user is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No active user")
    try:
        await client.gateway.request_clear_all()
    except NotificationClientError as e:
        raise http_error(e)
    return {"ok": True, "unreadCount": client.store.unread_count}


@router.put("/alerts/{permission}")
async def set_alert_permission(permission: AlertPermission, client: NotificationClient = Depends(get_client)):
    """Respuesta de la consola al permission_request de avisos."""
    client.surface.set_permission(permission.value)
    return {"ok": True, "permission": client.surface.permission.value}
