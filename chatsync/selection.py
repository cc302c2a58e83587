"""Session and model selection state.

Resolves which conversation and which backing model a new message belongs
to. A message sent from a "new chat" context creates the session first,
titled after the message; switching to an existing session also switches
the active model to the one that session is bound to.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chatsync.models import ChatModel, Session

logger = logging.getLogger(__name__)

TITLE_ELLIPSIS = "..."
DEFAULT_TITLE_LENGTH = 20


def derive_title(content: str, max_length: int = DEFAULT_TITLE_LENGTH) -> str:
    """Derive a session title from its first message.

    Content longer than ``max_length`` is cut to exactly ``max_length``
    characters followed by ``"..."``; shorter content is used verbatim.
    """
    if len(content) > max_length:
        return f"{content[:max_length]}{TITLE_ELLIPSIS}"
    return content


def resolve_default_model(models: Sequence[ChatModel]) -> ChatModel | None:
    """Return the first model flagged default, else the first model."""
    for model in models:
        if model.is_default:
            return model
    return models[0] if models else None


class SessionCreator(Protocol):
    """The part of the API client used to open new sessions."""

    async def create_session(self, *, model_id: int, title: str) -> Session: ...


class SelectionState:
    """Current session and model for the chat.

    Args:
        creator: Object that creates sessions server-side.
        title_max_length: Visible characters kept in derived titles.
    """

    def __init__(self, creator: SessionCreator, *, title_max_length: int = DEFAULT_TITLE_LENGTH) -> None:
        self._creator = creator
        self._title_max_length = title_max_length
        self.current_session_id: str | None = None
        self.selected_model_id: int | None = None
        self._models: list[ChatModel] = []

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    @property
    def models(self) -> list[ChatModel]:
        return list(self._models)

    @property
    def default_model(self) -> ChatModel | None:
        return resolve_default_model(self._models)

    def set_models(self, models: Sequence[ChatModel]) -> None:
        """Replace the known models; adopt the default if nothing is selected."""
        self._models = list(models)
        default = self.default_model
        if self.selected_model_id is None and default is not None:
            self.selected_model_id = default.id

    @property
    def effective_model_id(self) -> int | None:
        """Explicit selection, else the default model, else None."""
        if self.selected_model_id is not None:
            return self.selected_model_id
        default = self.default_model
        return default.id if default is not None else None

    @property
    def effective_model(self) -> ChatModel | None:
        model_id = self.effective_model_id
        for model in self._models:
            if model.id == model_id:
                return model
        return self.default_model

    def select_model(self, model_id: int) -> None:
        self.selected_model_id = model_id

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def resolve_session(self, content: str) -> str:
        """Return the session a new message belongs to, creating it if needed.

        With no current session, a session titled after ``content`` and bound
        to the effective model is created and becomes current.

        Raises:
            ValueError: No session is current and no model is known.
            APIError: The server rejected the session creation.
        """
        if self.current_session_id is not None:
            return self.current_session_id

        model_id = self.effective_model_id
        if model_id is None:
            raise ValueError("Cannot create a session without a model")

        title = derive_title(content, self._title_max_length)
        session = await self._creator.create_session(model_id=model_id, title=title)
        self.current_session_id = session.id
        logger.debug("Session %s is now current", session.id)
        return session.id

    def select_session(self, session_id: str, sessions: Sequence[Session]) -> None:
        """Make an existing session current and adopt its model."""
        self.current_session_id = session_id
        for session in sessions:
            if session.id == session_id:
                self.selected_model_id = session.model_id
                return
        logger.debug("Selected session %s is not in the known session list", session_id)

    def new_chat(self) -> None:
        """Leave the current session and fall back to the default model."""
        self.current_session_id = None
        default = self.default_model
        if default is not None:
            self.selected_model_id = default.id

    def on_session_deleted(self, session_id: str) -> None:
        """Forget the current session if it was the one deleted."""
        if self.current_session_id == session_id:
            self.current_session_id = None
