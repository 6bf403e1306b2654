"""Abstract base class for work-tracking platforms."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from sniff.models import (
    Activity,
    ActivityContext,
    ConversationMessage,
    NormalizedIssue,
    PlatformEvent,
    ResponseContext,
)


class Platform(ABC):
    """One implementation per provider. Shared code never branches on `name`."""

    name: ClassVar[str]
    # Request headers that may carry the webhook signature, first match wins
    signature_headers: ClassVar[tuple[str, ...]] = ()

    # Webhooks

    @abstractmethod
    def verify(self, body: bytes, signature: str) -> bool: ...

    @abstractmethod
    def parse(self, payload: dict[str, Any]) -> PlatformEvent | None:
        """Normalize a payload. None means "not for us"; raise only on malformed input."""

    def should_process(self, event: PlatformEvent) -> bool:
        # Never react to automation, including our own output
        return not event.actor.is_bot

    # Actions

    @abstractmethod
    async def respond(self, ctx: ResponseContext, message: str) -> None: ...

    async def report_activity(self, ctx: ActivityContext, activity: Activity) -> None:
        """Progress updates are optional; platforms without them do nothing."""

    # Context

    @abstractmethod
    async def get_issue(self, issue_id: str) -> NormalizedIssue: ...

    @abstractmethod
    async def get_conversation_history(self, issue_id: str) -> list[ConversationMessage]:
        """Ascending by timestamp, whatever order the provider returns."""

    async def get_session_history(self, event: PlatformEvent) -> list[ConversationMessage]:
        """Prior turns to continue from for this event; empty starts a fresh conversation."""
        return []

    async def aclose(self) -> None:
        pass
