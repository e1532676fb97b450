# notification_client/models/notification.py
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class NotificationType(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    POST = "post"
    OTHER = "other"


class NotificationStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"


class SourceUser(BaseModel):
    # referencia débil al actor, solo para mostrar
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    username: str = ""


class NotificationRecord(BaseModel):
    """
    Una notificación tal como la ve el cliente.
    El servidor a veces manda `_id` (fetch) y a veces `id` (push);
    aceptamos los dos para que el mismo registro tenga el mismo id.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    type: NotificationType = NotificationType.OTHER
    title: str
    content: str = ""
    status: NotificationStatus = NotificationStatus.UNREAD
    createdAt: datetime
    sourceUser: Optional[SourceUser] = None
    userId: Optional[str] = None   # destinatario, si el servidor lo incluye

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, value):
        # tipos desconocidos -> "other"
        try:
            return NotificationType(value)
        except ValueError:
            return NotificationType.OTHER

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, value):
        return value or NotificationStatus.UNREAD

    @field_validator("sourceUser", mode="before")
    @classmethod
    def source_user_ref(cls, value):
        # sin populate el servidor manda solo el id
        if isinstance(value, str):
            return {"id": value}
        return value

    @property
    def is_unread(self) -> bool:
        return self.status == NotificationStatus.UNREAD

    def mark_read(self) -> "NotificationRecord":
        if not self.is_unread:
            return self
        return self.model_copy(update={"status": NotificationStatus.READ})

    def is_less_read_than(self, other: "NotificationRecord") -> bool:
        return self.is_unread and not other.is_unread

    def time_ago(self, now: Optional[datetime] = None) -> str:
        created = self.createdAt
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        seconds = (now - created).total_seconds()
        minutes = int(seconds // 60)
        hours = int(seconds // 3600)
        days = int(seconds // 86400)

        if minutes < 1:
            return "Just now"
        if minutes < 60:
            return f"{minutes}m ago"
        if hours < 24:
            return f"{hours}h ago"
        return f"{days}d ago"


class UnreadCount(BaseModel):
    count: int = 0
