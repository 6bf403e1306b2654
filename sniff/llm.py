"""Anthropic Messages API client and the multi-turn tool-use loop.

One `send_message` call owns its message buffer for the duration of the call and
runs until the model produces a response that needs nothing more from us:

    AWAITING_MODEL ──server/MCP tool use──▶ DONE   (resolved by the vendor in one round trip)
          │  ▲
          │  └──── empty (or handler) tool results ◀── CLIENT_TOOL_PENDING
          │                                             (stop_reason == "tool_use")
          └──── no tool use ───────────────────▶ DONE

Termination is driven by classifying each response, not by a counter.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from sniff.errors import AnthropicApiError, ReasoningLoopError
from sniff.logging_config import get_logger

logger = get_logger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7

# Tool types that need an opt-in beta header
TOOL_BETAS = {"web_fetch_20250910": "web-fetch-2025-09-10"}
MCP_BETA = "mcp-client-2025-04-04"

SERVER_TOOL_USE_TYPES = frozenset({"server_tool_use", "mcp_tool_use"})
TOOL_USE_TYPES = SERVER_TOOL_USE_TYPES | {"tool_use"}


class ToolUseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    input: Any = {}


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    tokens_used: int
    iterations: int


ToolUseCallback = Callable[[ToolUseEvent], Awaitable[None]]
TextCallback = Callable[[str], Awaitable[None]]
ToolHandler = Callable[[ToolUseEvent], Awaitable[Any]]


def _is_tool_result(block_type: str) -> bool:
    return block_type == "tool_result" or block_type.endswith("_tool_result")


def _tool_event(block: dict) -> ToolUseEvent:
    return ToolUseEvent(id=block.get("id") or "", name=block.get("name") or "", input=block.get("input") or {})


def beta_features(tools: list[dict] | None, mcp_servers: list[dict] | None) -> list[str]:
    features = []
    for tool in tools or []:
        beta = TOOL_BETAS.get(tool.get("type", ""))
        if beta and beta not in features:
            features.append(beta)
    if mcp_servers:
        features.append(MCP_BETA)
    return features


class AnthropicClient:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("anthropic api key is required")
        self._api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        # Reasoning turns with tools routinely take minutes
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(600, connect=10))

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, body: dict, betas: list[str]) -> dict:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if betas:
            headers["anthropic-beta"] = ",".join(betas)
        try:
            response = await self._http.post(ANTHROPIC_API_URL, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise AnthropicApiError(f"Anthropic API request failed: {exc}") from exc
        if response.is_error:
            raise AnthropicApiError(
                f"Anthropic API request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    async def send_message(
        self,
        system_prompt: str,
        user_message: str | None = None,
        conversation_messages: list[dict[str, Any]] | None = None,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
        stop_sequences: list[str] | None = None,
        thinking: dict[str, Any] | None = None,
        tools: list[dict[str, Any]] | None = None,
        mcp_servers: list[dict[str, Any]] | None = None,
        on_tool_use: ToolUseCallback | None = None,
        on_thinking: TextCallback | None = None,
        on_interim_text: TextCallback | None = None,
        tool_handler: ToolHandler | None = None,
        max_iterations: int | None = None,
    ) -> MessageResponse:
        """Run the tool-use loop until the model gives a final answer.

        Exactly one of `user_message` or `conversation_messages` must be given.
        Callbacks fire in the order the blocks appear in each response.

        `tool_handler` produces the result content for client-side tools; without one
        every client tool is answered with an empty result. `max_iterations` caps the
        number of requests; None leaves the loop unbounded.

        Raises:
            ValueError: both or neither of the message arguments were given.
            AnthropicApiError: any request failed. Nothing is retried here.
            ReasoningLoopError: `max_iterations` was exceeded.
        """
        if user_message is None and conversation_messages is None:
            raise ValueError("Either user_message or conversation_messages must be provided")
        if user_message is not None and conversation_messages is not None:
            raise ValueError("Cannot provide both user_message and conversation_messages")

        messages: list[dict[str, Any]] = (
            [{"role": m["role"], "content": m["content"]} for m in conversation_messages]
            if conversation_messages is not None
            else [{"role": "user", "content": user_message}]
        )

        total_tokens = 0
        iterations = 0

        while True:
            if max_iterations is not None and iterations >= max_iterations:
                raise ReasoningLoopError(f"Tool-use loop did not finish within {max_iterations} iterations")
            iterations += 1

            body: dict[str, Any] = {
                "model": model or self.model,
                "max_tokens": max_tokens or self.max_tokens,
                "temperature": temperature if temperature is not None else self.temperature,
                "system": system_prompt,
                "messages": messages,
            }
            if top_p is not None:
                body["top_p"] = top_p
            if top_k is not None:
                body["top_k"] = top_k
            if stop_sequences:
                body["stop_sequences"] = stop_sequences
            if thinking:
                body["thinking"] = thinking
            if tools:
                body["tools"] = tools
            if mcp_servers:
                body["mcp_servers"] = mcp_servers

            # Recomputed every turn: the tool set is per-request
            data = await self._post(body, beta_features(tools, mcp_servers))

            usage = data.get("usage") or {}
            total_tokens += (usage.get("input_tokens") or 0) + (usage.get("output_tokens") or 0)
            blocks: list[dict[str, Any]] = data.get("content") or []
            stop_reason = data.get("stop_reason")
            logger.debug(
                "Iteration %d: stop_reason=%s blocks=%s tokens=%d",
                iterations,
                stop_reason,
                [b.get("type") for b in blocks],
                total_tokens,
            )

            if any(b.get("type") in SERVER_TOOL_USE_TYPES for b in blocks):
                content = await self._finish_server_tools(blocks, on_tool_use, on_interim_text)
                return MessageResponse(content=content, tokens_used=total_tokens, iterations=iterations)

            client_tools = [b for b in blocks if b.get("type") == "tool_use"]
            if client_tools and stop_reason == "tool_use":
                interim = "\n".join(b.get("text") or "" for b in blocks if b.get("type") == "text").strip()
                if interim and on_interim_text:
                    await on_interim_text(interim)

                messages.append({"role": "assistant", "content": blocks})

                results = []
                for block in client_tools:
                    event = _tool_event(block)
                    if on_tool_use:
                        await on_tool_use(event)
                    results.append(
                        {
                            "type": "tool_result",
                            "tool_use_id": block.get("id"),
                            "content": await tool_handler(event) if tool_handler else [],
                        }
                    )
                messages.append({"role": "user", "content": results})
                logger.debug("Answered %d client tool call(s), continuing", len(results))
                continue

            if on_thinking:
                for block in blocks:
                    if block.get("type") == "thinking" and block.get("thinking"):
                        await on_thinking(block["thinking"])
            content = "\n".join(b.get("text") or "" for b in blocks if b.get("type") == "text")
            return MessageResponse(content=content, tokens_used=total_tokens, iterations=iterations)

    async def _finish_server_tools(
        self,
        blocks: list[dict[str, Any]],
        on_tool_use: ToolUseCallback | None,
        on_interim_text: TextCallback | None,
    ) -> str:
        """Report interim text and tool calls in order; text after the last tool block is the answer."""
        last_tool_index = max(
            i for i, b in enumerate(blocks) if b.get("type") in SERVER_TOOL_USE_TYPES or _is_tool_result(b.get("type", ""))
        )

        for i, block in enumerate(blocks):
            kind = block.get("type")
            if kind == "text" and block.get("text") and i < last_tool_index and on_interim_text:
                await on_interim_text(block["text"])
            elif kind in TOOL_USE_TYPES and on_tool_use:
                await on_tool_use(_tool_event(block))

        return "\n".join(
            b.get("text") or "" for b in blocks[last_tool_index + 1 :] if b.get("type") == "text"
        ).strip()
