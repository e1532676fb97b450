# notification_client/models/push_message.py
from typing import Any, Optional
from pydantic import BaseModel

NEW_NOTIFICATION = "new_notification"
IDENTIFY = "identify"


class PushMessage(BaseModel):
    event: str
    data: Optional[Any] = None
