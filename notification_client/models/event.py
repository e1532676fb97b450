# notification_client/models/event.py
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from notification_client.errors import ValidationError

MAX_COMMENT_LENGTH = 200


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    username: str
    email: str = ""


class UserCreate(BaseModel):
    username: str
    email: str

    @field_validator("username", "email")
    @classmethod
    def required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username and email are required")
        return value

    @field_validator("email")
    @classmethod
    def looks_like_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("Invalid email")
        return value


class Post(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str
    userId: Optional[str] = None
    createdAt: Optional[datetime] = None


class PostCreate(BaseModel):
    title: str
    userId: str

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Post title is required")
        return value


class EventType(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"


class TriggerEvent(BaseModel):
    """
    Cuerpo de POST /events.
      {
        "type": "like",
        "sourceUserId": "u1",
        "targetUserId": "u2",
        "entityId": "p1",
        "data": { "entityType": "post", "entityTitle": "..." }
      }
    """
    type: EventType
    sourceUserId: str
    targetUserId: str
    entityId: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_event(self):
        if not self.targetUserId:
            raise ValueError("Please select a target user")
        if self.sourceUserId == self.targetUserId:
            raise ValueError("Cannot trigger event on yourself")

        if self.type in (EventType.LIKE, EventType.COMMENT) and not self.entityId:
            raise ValueError("Please select a post")

        if self.type == EventType.COMMENT:
            comment = str(self.data.get("commentText", "")).strip()
            if not comment:
                raise ValueError("Please enter a comment")
            if len(comment) > MAX_COMMENT_LENGTH:
                raise ValueError(f"Comment is longer than {MAX_COMMENT_LENGTH} characters")
        return self

    @classmethod
    def compose(
        cls,
        event_type: str,
        source_user_id: str,
        target_user_id: str,
        entity_id: str = "",
        comment_text: str = "",
        target_posts: Iterable[Post] = (),
    ) -> "TriggerEvent":
        """
        Arma el evento igual que el formulario: completa `data` según el tipo
        y busca el título del post en los posts del usuario destino.
        Lanza ValidationError si algo no cuadra.
        """
        posts = list(target_posts)

        if not target_user_id:
            raise ValidationError("Please select a target user")
        if source_user_id == target_user_id:
            raise ValidationError("Cannot trigger event on yourself")
        if event_type in (EventType.LIKE.value, EventType.COMMENT.value) and not posts:
            raise ValidationError("Target user hasn't created any posts yet")

        title = next((p.title for p in posts if p.id == entity_id), "a post")

        if event_type == EventType.LIKE.value:
            data = {"entityType": "post", "entityTitle": title}
        elif event_type == EventType.COMMENT.value:
            data = {
                "entityType": "post",
                "entityTitle": title,
                "commentText": comment_text.strip(),
            }
        else:
            data = {"entityType": "user"}

        return parse_model(
            cls,
            {
                "type": event_type,
                "sourceUserId": source_user_id,
                "targetUserId": target_user_id,
                "entityId": entity_id,
                "data": data,
            },
        )


def parse_model(model, payload):
    """Valida `payload` contra `model` y traduce el error de pydantic al nuestro."""
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        messages = [err.get("msg", "") for err in e.errors()]
        raise ValidationError("; ".join(messages) or str(e)) from e
