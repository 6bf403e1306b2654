"""Shared pydantic models: the contract between platforms, the runner and the server."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

EventType = Literal["issue_created", "issue_updated", "comment_created", "mention"]
StateType = Literal["backlog", "unstarted", "started", "completed", "cancelled"]
ActivityType = Literal["thinking", "tool_use", "responding", "error"]
Role = Literal["user", "assistant"]

_STATE_TYPES: dict[str, StateType] = {
    "backlog": "backlog",
    "unstarted": "unstarted",
    "started": "started",
    "completed": "completed",
    "canceled": "cancelled",
    "cancelled": "cancelled",
}


def map_state_type(raw: str | None) -> StateType:
    """Map a provider state category onto the canonical five; unknown values become 'unstarted'."""
    return _STATE_TYPES.get((raw or "").lower(), "unstarted")


class Assignee(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str | None = None


class NormalizedIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # provider-native ID
    title: str
    description: str = ""
    state: str = "unknown"  # provider state name, e.g. "In Progress"
    state_type: StateType = "unstarted"
    labels: list[str] = []
    priority: int = 0  # 0 = none, 1 = urgent … 4 = low
    assignee: Assignee | None = None
    url: str = ""
    created_at: datetime
    updated_at: datetime

    @field_validator("state_type", mode="before")
    @classmethod
    def _canonical_state_type(cls, value: Any) -> StateType:
        return map_state_type(value if isinstance(value, str) else None)


class PlatformActor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str | None = None
    is_bot: bool = False


class NormalizedComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    body: str
    author: PlatformActor
    created_at: datetime


class PlatformEvent(BaseModel):
    """One inbound provider payload, normalized. Consumed once by the server."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    platform: str
    issue: NormalizedIssue
    actor: PlatformActor
    comment: NormalizedComment | None = None
    agent_session_id: str | None = None  # provider-side session/thread, when the payload has one
    raw: dict[str, Any] = {}


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime
    author: PlatformActor | None = None


class Activity(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ActivityType
    message: str
    tool_name: str | None = None
    tool_input: Any = None


class ActivityContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str
    issue_id: str
    session_id: str  # minted by the server, one per accepted event
    agent_session_id: str | None = None


class ResponseContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str
    issue_id: str
    parent_comment_id: str | None = None


class ThinkingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["enabled", "disabled"]
    budget_tokens: int | None = None


class McpServer(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = "url"
    url: str
    name: str
    authorization_token: str | None = None
    tool_configuration: dict[str, Any] | None = None


class ModelParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: list[str] | None = None
    thinking: ThinkingConfig | None = None
    tools: list[dict[str, Any]] = []
    mcp_servers: list[McpServer] = []


class AgentDefinition(BaseModel):
    """An agent as configured in sniff.toml. Immutable for the life of the process."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    system_prompt: str
    model: ModelParams = ModelParams()


class AgentRunResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    response: str | None = None
    tokens_used: int | None = None
    error: str | None = None
