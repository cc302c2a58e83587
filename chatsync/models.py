"""Chat API data models.

Pydantic schemas for models, sessions and messages as returned by the chat
API. Wire names are camelCase; attributes are snake_case.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatModel(BaseModel):
    """A backing model a session can be associated with."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(description="Model identifier")
    name: str = Field(description="Display name")
    color: str = Field(default="#374151", description="Color token used by clients")
    is_default: bool = Field(default=False, alias="isDefault")


class Session(BaseModel):
    """A conversation.

    The id is issued by the server. The title is derived from the first
    message and only ever changed server-side afterwards.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Opaque server-issued session id")
    title: str = Field(description="Session title")
    model_id: int = Field(alias="modelId", description="Model the session is bound to")


class Message(BaseModel):
    """An authoritative message.

    Messages are append-only; ``position`` is the arrival order within the
    session and is assigned from the list index when the list is read.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int | str = Field(description="Message identifier")
    role: Literal["user", "assistant"]
    content: str
    session_id: str | None = Field(default=None, alias="sessionId")
    position: int = Field(default=0, ge=0)


class ModelList(BaseModel):
    """Response of ``GET /chat/models``."""

    models: list[ChatModel] = Field(default_factory=list)


class SessionList(BaseModel):
    """Response of ``GET /chat/sessions``."""

    sessions: list[Session] = Field(default_factory=list)


class MessageList(BaseModel):
    """Response of ``GET /chat/sessions/{id}/messages``."""

    messages: list[Message] = Field(default_factory=list)


class SessionCreate(BaseModel):
    """Body of ``POST /chat/sessions``."""

    model_config = ConfigDict(populate_by_name=True)

    model_id: int = Field(alias="modelId")
    title: str = Field(max_length=255)


class MessageCreate(BaseModel):
    """Body of ``POST /chat/sessions/{id}/messages``."""

    content: str = Field(min_length=1)
