"""HTTP front door: verify, normalize and acknowledge webhooks, then run agents in the background."""

import asyncio
import json
import secrets
import time
from collections.abc import Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sniff.llm import AnthropicClient
from sniff.logging_config import get_logger
from sniff.models import AgentDefinition, PlatformEvent
from sniff.providers.base import Platform
from sniff.runner import run_agent

logger = get_logger(__name__)


def new_session_id() -> str:
    """Time plus randomness; unique across concurrent requests without shared state."""
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def select_agent(agents: Sequence[AgentDefinition], event: PlatformEvent) -> AgentDefinition | None:
    """Pick the agent for an event. Currently the first one configured.

    Routing on labels, team or event type belongs here.
    """
    return agents[0] if agents else None


def _signature(request: Request, platform: Platform) -> str:
    for header in platform.signature_headers:
        if value := request.headers.get(header):
            return value
    return ""


async def execute_event(
    event: PlatformEvent,
    agent: AgentDefinition,
    platform: Platform,
    llm_client: AnthropicClient,
    session_id: str,
) -> None:
    try:
        history = await platform.get_session_history(event)
    except Exception:
        logger.warning("Could not load history for %s, starting fresh", session_id, exc_info=True)
        history = []

    result = await run_agent(
        event=event,
        agent=agent,
        platform=platform,
        llm_client=llm_client,
        session_id=session_id,
        conversation_history=history,
    )
    # Failures are already logged by run_agent
    if result.success:
        logger.info("Agent %s finished %s (%s tokens)", agent.id, session_id, result.tokens_used)


def _reap(tasks: set[asyncio.Task]):
    def callback(task: asyncio.Task) -> None:
        tasks.discard(task)
        if task.cancelled():
            return
        if exc := task.exception():
            logger.error("Agent run %s crashed", task.get_name(), exc_info=exc)

    return callback


def create_app(
    platforms: Sequence[Platform],
    agents: Sequence[AgentDefinition],
    llm_client: AnthropicClient,
) -> FastAPI:
    platform_map = {p.name: p for p in platforms}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Agents: %s", ", ".join(f"{a.name} ({a.id})" for a in agents) or "(none)")
        for name in platform_map:
            logger.info("Webhook endpoint: POST /webhook/%s", name)
        yield
        pending = len(app.state.background_tasks)
        if pending:
            logger.warning("Shutting down with %d agent run(s) still in flight", pending)
        await llm_client.aclose()
        for platform in platforms:
            await platform.aclose()

    app = FastAPI(title="sniff", lifespan=lifespan)
    app.state.background_tasks = set()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse({"error": message}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception in %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/webhook/{provider}")
    async def webhook(provider: str, request: Request) -> JSONResponse:
        platform = platform_map.get(provider)
        if platform is None:
            return JSONResponse({"error": f"Unknown platform: {provider}"}, status_code=404)

        try:
            body = await request.body()
            if not platform.verify(body, _signature(request, platform)):
                logger.warning("Rejected %s webhook with invalid signature", provider)
                return JSONResponse({"error": "Invalid webhook signature"}, status_code=401)

            event = platform.parse(json.loads(body))
            if event is None:
                return JSONResponse({"status": "ignored"})

            if not platform.should_process(event):
                logger.info("Skipping %s event from %s", event.type, event.actor.name)
                return JSONResponse({"status": "skipped"})

            agent = select_agent(agents, event)
            if agent is None:
                return JSONResponse({"status": "no_matching_agent"})

            session_id = new_session_id()
            logger.info("Accepted %s on %s as %s for agent %s", event.type, event.issue.id, session_id, agent.id)
            task = asyncio.create_task(
                execute_event(event, agent, platform, llm_client, session_id),
                name=session_id,
            )
            app.state.background_tasks.add(task)
            task.add_done_callback(_reap(app.state.background_tasks))
        except Exception:
            logger.exception("Webhook processing error")
            return JSONResponse({"error": "Internal server error"}, status_code=500)

        return JSONResponse({"status": "processing"})

    return app
