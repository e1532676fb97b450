# notification_client/api/events.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from notification_client.api.deps import get_client, http_error
from notification_client.errors import NotificationClientError
from notification_client.services.client import NotificationClient

router = APIRouter(prefix="/events", tags=["events"])


class EventIn(BaseModel):
    type: str = "like"
    targetUserId: str = ""
    entityId: str = ""
    commentText: str = ""


@router.post("")
async def trigger_event(body: EventIn, client: NotificationClient = Depends(get_client)):
    """
    Dispara like / comment / follow desde el usuario activo hacia targetUserId.
    El servidor crea la notificación y, si el destino está conectado,
    llega por push.
    """
    try:
        event = await client.trigger_event(
            body.type,
            body.targetUserId,
            entity_id=body.entityId,
            comment_text=body.commentText,
        )
    except NotificationClientError as e:
        raise http_error(e)
    return {"ok": True, "event": event.model_dump(mode="json")}
