"""Linear webhook verification and payload normalization."""

import hashlib
import hmac
from typing import Any

from sniff.models import (
    Assignee,
    NormalizedComment,
    NormalizedIssue,
    PlatformActor,
    PlatformEvent,
)

PLATFORM = "linear"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of the hex HMAC-SHA256 of the raw body."""
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.strip().encode(), expected.encode())


def _session_issue(session: dict, updated_at: str) -> NormalizedIssue:
    # Session payloads carry a partial issue; state/labels/priority need a get_issue() call
    issue = session["issue"]
    return NormalizedIssue(
        id=issue["id"],
        title=issue["title"],
        description=issue.get("description") or "",
        state="unknown",
        state_type="unstarted",
        url=issue.get("url") or "",
        created_at=session["createdAt"],
        updated_at=updated_at,
    )


def _session_actor(session: dict) -> PlatformActor:
    creator = session["creator"]
    # A person started the session; bots cannot @mention the agent
    return PlatformActor(id=creator["id"], name=creator["name"], email=creator.get("email"), is_bot=False)


def _parse_agent_session(payload: dict) -> PlatformEvent:
    session = payload["agentSession"]
    actor = _session_actor(session)
    comment = session.get("comment")
    return PlatformEvent(
        type="mention",
        platform=PLATFORM,
        issue=_session_issue(session, session["updatedAt"]),
        actor=actor,
        comment=(
            NormalizedComment(id=comment["id"], body=comment.get("body") or "", author=actor, created_at=session["createdAt"])
            if comment
            else None
        ),
        agent_session_id=session["id"],
        raw=payload,
    )


def _parse_agent_activity(payload: dict) -> PlatformEvent | None:
    activity = payload["agentActivity"]
    session = payload["agentSession"]

    # Only user prompts start a turn; our own thoughts/responses echo back too
    if (activity.get("content") or {}).get("type") != "prompt":
        return None

    actor = _session_actor(session)
    return PlatformEvent(
        type="comment_created",
        platform=PLATFORM,
        issue=_session_issue(session, activity["createdAt"]),
        actor=actor,
        comment=NormalizedComment(
            id=activity["id"],
            body=activity["content"].get("body") or "",
            author=actor,
            created_at=activity["createdAt"],
        ),
        agent_session_id=session["id"],
        raw=payload,
    )


def _parse_issue(payload: dict) -> PlatformEvent:
    data = payload["data"]
    state = data.get("state") or {}
    assignee = data.get("assignee")
    creator = data.get("creator")

    issue = NormalizedIssue(
        id=data["id"],
        title=data["title"],
        description=data.get("description") or "",
        state=state.get("name") or "unknown",
        state_type=state.get("type"),
        labels=[label["name"] for label in data.get("labels") or []],
        priority=data.get("priority") or 0,
        assignee=Assignee(id=assignee["id"], name=assignee["name"], email=assignee.get("email")) if assignee else None,
        url=data.get("url") or "",
        created_at=data["createdAt"],
        updated_at=data["updatedAt"],
    )
    actor = (
        PlatformActor(id=creator["id"], name=creator["name"], email=creator.get("email"), is_bot=False)
        if creator
        else PlatformActor(id="unknown", name="Unknown", is_bot=False)
    )
    return PlatformEvent(
        type="issue_created" if payload.get("action") == "create" else "issue_updated",
        platform=PLATFORM,
        issue=issue,
        actor=actor,
        raw=payload,
    )


def parse_webhook(payload: Any) -> PlatformEvent | None:
    """Normalize a Linear webhook. Unknown payload types are ignored, not rejected."""
    if not isinstance(payload, dict):
        raise ValueError(f"Linear webhook payload must be an object, got {type(payload).__name__}")

    kind = payload.get("type")
    if kind == "AgentSession" and payload.get("agentSession"):
        return _parse_agent_session(payload)
    if kind == "AgentActivity" and payload.get("agentActivity") and payload.get("agentSession"):
        return _parse_agent_activity(payload)
    if kind == "Issue" and payload.get("data"):
        return _parse_issue(payload)
    return None
