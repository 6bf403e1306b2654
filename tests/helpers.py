"""Helpers shared by test modules."""

import hashlib
import hmac
import json

from sniff.models import (
    Activity,
    ActivityContext,
    ConversationMessage,
    NormalizedIssue,
    PlatformEvent,
    ResponseContext,
)
from sniff.providers.base import Platform

WEBHOOK_SECRET = "whsec_test"


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def to_body(payload: dict) -> bytes:
    return json.dumps(payload).encode()


def anthropic_response(content: list[dict], stop_reason: str = "end_turn", usage: tuple[int, int] = (10, 5)) -> dict:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "content": content,
        "stop_reason": stop_reason,
        "usage": {"input_tokens": usage[0], "output_tokens": usage[1]},
    }


class RecordingPlatform(Platform):
    """In-memory platform that records every activity and reply it is given."""

    name = "fake"
    signature_headers = ("x-fake-signature",)

    def __init__(self, event: PlatformEvent | None = None, *, valid: bool = True, fail_activities: bool = False) -> None:
        self.event = event
        self.valid = valid
        self.fail_activities = fail_activities
        self.signatures: list[str] = []
        self.log: list[tuple[str, object]] = []
        self.contexts: list[ActivityContext] = []
        self.responses: list[tuple[ResponseContext, str]] = []
        self.closed = False

    def verify(self, body: bytes, signature: str) -> bool:
        self.signatures.append(signature)
        return self.valid

    def parse(self, payload: dict) -> PlatformEvent | None:
        return self.event

    async def respond(self, ctx: ResponseContext, message: str) -> None:
        self.log.append(("respond", message))
        self.responses.append((ctx, message))

    async def report_activity(self, ctx: ActivityContext, activity: Activity) -> None:
        if self.fail_activities and activity.type == "error":
            raise RuntimeError("activity endpoint down")
        self.contexts.append(ctx)
        self.log.append((activity.type, activity.message))

    async def get_issue(self, issue_id: str) -> NormalizedIssue:
        raise NotImplementedError

    async def get_conversation_history(self, issue_id: str) -> list[ConversationMessage]:
        return []

    async def aclose(self) -> None:
        self.closed = True
