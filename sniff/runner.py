"""Run one agent against one normalized event."""

import json

from sniff.llm import AnthropicClient, ToolUseEvent
from sniff.logging_config import get_logger
from sniff.models import (
    Activity,
    ActivityContext,
    AgentDefinition,
    AgentRunResult,
    ConversationMessage,
    NormalizedIssue,
    PlatformEvent,
    ResponseContext,
)
from sniff.providers.base import Platform

logger = get_logger(__name__)


def format_issue(issue: NormalizedIssue) -> str:
    """Serialize the issue into the first user message of a fresh conversation."""
    return json.dumps(
        {
            "title": issue.title,
            "description": issue.description,
            "state": issue.state,
            "labels": issue.labels,
            "priority": issue.priority,
            "url": issue.url,
        },
        indent=2,
    )


def format_response(agent: AgentDefinition, answer: str) -> str:
    return f"[Agent: {agent.name}]\n\n{answer}"


async def run_agent(
    event: PlatformEvent,
    agent: AgentDefinition,
    platform: Platform,
    llm_client: AnthropicClient,
    session_id: str,
    conversation_history: list[ConversationMessage] | None = None,
) -> AgentRunResult:
    """Drive one reasoning session and relay its progress to the platform.

    With a non-empty history the conversation continues from it and the event's
    comment becomes the newest user turn; otherwise the issue itself is the prompt.
    Never raises: failures come back as AgentRunResult(success=False).
    """
    is_conversation = bool(conversation_history)
    activity_ctx = ActivityContext(
        platform=platform.name,
        issue_id=event.issue.id,
        session_id=session_id,
        agent_session_id=event.agent_session_id,
    )

    async def report(activity: Activity) -> None:
        await platform.report_activity(activity_ctx, activity)

    async def on_tool_use(tool: ToolUseEvent) -> None:
        await report(
            Activity(type="tool_use", message=f"Using {tool.name}", tool_name=tool.name, tool_input=tool.input)
        )

    async def on_text(text: str) -> None:
        await report(Activity(type="thinking", message=text))

    try:
        await report(
            Activity(
                type="thinking",
                message=f"[Agent: {agent.name}] Thinking..."
                if is_conversation
                else f"[Agent: {agent.name}] Analyzing issue...",
            )
        )

        user_message: str | None = None
        conversation: list[dict[str, str]] | None = None
        if is_conversation:
            ordered = sorted(conversation_history or [], key=lambda m: m.timestamp)
            conversation = [{"role": m.role, "content": m.content} for m in ordered]
            if event.comment and event.comment.body:
                conversation.append({"role": "user", "content": event.comment.body})
        else:
            user_message = format_issue(event.issue)

        params = agent.model
        response = await llm_client.send_message(
            system_prompt=agent.system_prompt,
            user_message=user_message,
            conversation_messages=conversation,
            model=params.name,
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            top_p=params.top_p,
            top_k=params.top_k,
            stop_sequences=params.stop_sequences,
            thinking=params.thinking.model_dump(exclude_none=True) if params.thinking else None,
            tools=params.tools or None,
            mcp_servers=[s.model_dump(exclude_none=True) for s in params.mcp_servers] or None,
            on_tool_use=on_tool_use,
            on_thinking=on_text,
            on_interim_text=on_text,
        )

        formatted = format_response(agent, response.content)
        await report(Activity(type="responding", message=formatted))
        await platform.respond(
            ResponseContext(
                platform=platform.name,
                issue_id=event.issue.id,
                parent_comment_id=event.comment.id if event.type == "mention" and event.comment else None,
            ),
            formatted,
        )

        return AgentRunResult(success=True, response=response.content, tokens_used=response.tokens_used)
    except Exception as exc:
        error_message = str(exc) or "Agent run failed"
        logger.error("Agent %s failed in %s: %s", agent.id, session_id, error_message)

        try:
            await report(Activity(type="error", message=f"[Agent: {agent.name}] Error: {error_message}"))
        except Exception as report_exc:
            # Secondary failure; the first error is what gets returned
            logger.debug("Could not report error activity for %s: %s", session_id, report_exc)

        return AgentRunResult(success=False, error=error_message)
