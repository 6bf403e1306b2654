"""Linear platform: webhooks in, comments and agent activities out, over GraphQL."""

import json
from typing import Any, ClassVar

import httpx

from sniff.errors import LinearApiError
from sniff.logging_config import get_logger
from sniff.models import (
    Activity,
    ActivityContext,
    Assignee,
    ConversationMessage,
    NormalizedIssue,
    PlatformActor,
    PlatformEvent,
    ResponseContext,
)
from sniff.providers.base import Platform
from sniff.providers.linear_webhook import parse_webhook, verify_signature

logger = get_logger(__name__)

ENDPOINT = "https://api.linear.app/graphql"

_GET_ISSUE = """
query GetIssue($id: String!) {
  issue(id: $id) {
    id
    identifier
    title
    description
    priority
    url
    createdAt
    updatedAt
    state { id name type }
    assignee { id name email }
    team { id name key }
    labels { nodes { id name } }
    comments {
      nodes {
        id
        body
        createdAt
        user { id name email isMe }
      }
    }
  }
}
"""

_GET_AGENT_SESSION_ACTIVITIES = """
query AgentSession($id: String!) {
  agentSession(id: $id) {
    activities {
      edges {
        node {
          updatedAt
          content {
            __typename
            ... on AgentActivityPromptContent { body }
            ... on AgentActivityThoughtContent { body }
            ... on AgentActivityActionContent { action parameter result }
            ... on AgentActivityElicitationContent { body }
            ... on AgentActivityResponseContent { body }
            ... on AgentActivityErrorContent { body }
          }
        }
      }
    }
  }
}
"""

_CREATE_COMMENT = """
mutation CreateComment($issueId: String!, $body: String!, $parentId: String) {
  commentCreate(input: { issueId: $issueId, body: $body, parentId: $parentId }) {
    success
    comment { id body }
  }
}
"""

_CREATE_AGENT_ACTIVITY = """
mutation CreateAgentActivity($sessionId: String!, $content: JSONObject!) {
  agentActivityCreate(input: { agentSessionId: $sessionId, content: $content }) {
    success
    agentActivity { id }
  }
}
"""


def _activity_content(activity: Activity) -> dict[str, Any]:
    match activity.type:
        case "tool_use":
            return {
                "type": "action",
                "action": activity.tool_name or "tool",
                "parameter": json.dumps(activity.tool_input or {}),
            }
        case "responding":
            return {"type": "response", "body": activity.message}
        case "error":
            return {"type": "error", "body": activity.message}
        case _:
            return {"type": "thought", "body": activity.message}


class LinearPlatform(Platform):
    name: ClassVar[str] = "linear"
    signature_headers: ClassVar[tuple[str, ...]] = ("linear-signature", "x-linear-signature")

    def __init__(
        self,
        access_token: str,
        webhook_secret: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not access_token:
            raise RuntimeError("linear access token is required")
        self._access_token = access_token
        self._webhook_secret = webhook_secret or None
        self._http = http_client or httpx.AsyncClient(timeout=30)
        if not self._webhook_secret:
            logger.warning("LINEAR_WEBHOOK_SECRET is not set: webhook signatures will NOT be verified")

    async def _gql(self, query: str, variables: dict | None = None) -> dict:
        try:
            response = await self._http.post(
                ENDPOINT,
                json={"query": query, "variables": variables or {}},
                headers={
                    "Authorization": self._access_token,
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            raise LinearApiError(f"Linear API request failed: {exc}") from exc
        if response.is_error:
            raise LinearApiError(
                f"Linear API request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        data = response.json()
        if data.get("errors"):
            messages = ", ".join(e.get("message", "") for e in data["errors"])
            raise LinearApiError(f"Linear API error: {messages}", graphql_errors=data["errors"])
        return data["data"]

    async def _fetch_issue_node(self, issue_id: str) -> dict:
        data = await self._gql(_GET_ISSUE, {"id": issue_id})
        node = data.get("issue")
        if not node:
            raise LinearApiError(f"Issue '{issue_id}' not found in Linear")
        return node

    # Webhooks

    def verify(self, body: bytes, signature: str) -> bool:
        if not self._webhook_secret:
            # Development mode
            return True
        return verify_signature(body, signature, self._webhook_secret)

    def parse(self, payload: dict[str, Any]) -> PlatformEvent | None:
        return parse_webhook(payload)

    # Actions

    async def respond(self, ctx: ResponseContext, message: str) -> None:
        data = await self._gql(
            _CREATE_COMMENT,
            {"issueId": ctx.issue_id, "body": message, "parentId": ctx.parent_comment_id},
        )
        if not data["commentCreate"]["success"]:
            raise LinearApiError("Linear commentCreate returned success=false")

    async def report_activity(self, ctx: ActivityContext, activity: Activity) -> None:
        if not ctx.agent_session_id:
            # Plain issue webhooks have no agent session to attach activities to
            logger.debug("No Linear agent session for %s, dropping %s activity", ctx.session_id, activity.type)
            return
        await self._gql(
            _CREATE_AGENT_ACTIVITY,
            {"sessionId": ctx.agent_session_id, "content": _activity_content(activity)},
        )

    # Context

    async def get_issue(self, issue_id: str) -> NormalizedIssue:
        node = await self._fetch_issue_node(issue_id)
        assignee = node.get("assignee")
        return NormalizedIssue(
            id=node["id"],
            title=node["title"],
            description=node.get("description") or "",
            state=node["state"]["name"],
            state_type=node["state"]["type"],
            labels=[label["name"] for label in node.get("labels", {}).get("nodes", [])],
            priority=node.get("priority") or 0,
            assignee=Assignee(id=assignee["id"], name=assignee["name"], email=assignee.get("email")) if assignee else None,
            url=node["url"],
            created_at=node["createdAt"],
            updated_at=node["updatedAt"],
        )

    async def get_conversation_history(self, issue_id: str) -> list[ConversationMessage]:
        node = await self._fetch_issue_node(issue_id)
        messages = [
            ConversationMessage(
                role="assistant" if c["user"].get("isMe") else "user",
                content=c["body"],
                timestamp=c["createdAt"],
                author=PlatformActor(
                    id=c["user"]["id"],
                    name=c["user"]["name"],
                    email=c["user"].get("email"),
                    is_bot=bool(c["user"].get("isMe")),
                ),
            )
            for c in node.get("comments", {}).get("nodes", [])
            if c.get("user")
        ]
        return sorted(messages, key=lambda m: m.timestamp)

    async def get_agent_session_history(self, session_id: str) -> list[ConversationMessage]:
        data = await self._gql(_GET_AGENT_SESSION_ACTIVITIES, {"id": session_id})
        messages: list[ConversationMessage] = []
        for edge in data["agentSession"]["activities"]["edges"]:
            content = edge["node"]["content"]
            kind = content.get("__typename")
            if not content.get("body") or kind not in ("AgentActivityPromptContent", "AgentActivityResponseContent"):
                continue
            messages.append(
                ConversationMessage(
                    role="user" if kind == "AgentActivityPromptContent" else "assistant",
                    content=content["body"],
                    timestamp=edge["node"]["updatedAt"],
                )
            )
        return sorted(messages, key=lambda m: m.timestamp)

    async def get_session_history(self, event: PlatformEvent) -> list[ConversationMessage]:
        if event.type != "comment_created" or not event.agent_session_id:
            return []
        history = await self.get_agent_session_history(event.agent_session_id)
        # The triggering prompt is already in the session; the runner appends it itself
        if history and event.comment and history[-1].role == "user" and history[-1].content == event.comment.body:
            history = history[:-1]
        return history

    async def aclose(self) -> None:
        await self._http.aclose()
