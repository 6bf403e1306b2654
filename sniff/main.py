"""sniff CLI: serve webhooks and inspect configuration."""

from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich import print as rprint
from rich.table import Table

from sniff.llm import AnthropicClient
from sniff.logging_config import setup_logging
from sniff.providers.linear import LinearPlatform
from sniff.server import create_app
from sniff.settings import SniffSettings, get_settings, load_agents

app = typer.Typer(help="sniff: AI agents for your issue tracker", no_args_is_help=True)

ConfigOpt = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Agents file (default: $SNIFF_CONFIG or sniff.toml)"),
]


@app.command("serve")
def serve(
    config: ConfigOpt = None,
    host: Annotated[str | None, typer.Option("--host", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Listen port (default: $PORT or 3000)")] = None,
) -> None:
    """Start the webhook server."""
    settings = get_settings(sniff_config=config, host=host, port=port)
    setup_logging(settings.sniff_log_level)

    agents = load_agents(settings.sniff_config)
    if not agents:
        rprint(f"[yellow]Warning:[/yellow] no agents defined in {settings.sniff_config}; every event will be skipped")

    if settings.linear_access_token is None or settings.anthropic_api_key is None:
        raise typer.Exit(1)
    linear = LinearPlatform(
        access_token=settings.linear_access_token.get_secret_value(),
        webhook_secret=settings.linear_webhook_secret.get_secret_value() if settings.linear_webhook_secret else None,
    )
    llm_client = AnthropicClient(api_key=settings.anthropic_api_key.get_secret_value())

    uvicorn.run(create_app([linear], agents, llm_client), host=settings.host, port=settings.port, log_config=None)


@app.command("agents")
def agents_cmd(config: ConfigOpt = None) -> None:
    """List configured agents."""
    path = config or SniffSettings().sniff_config
    agents = load_agents(path)

    table = Table(title=f"Agents ({path})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Model")
    table.add_column("Tools")
    table.add_column("MCP servers", style="dim")

    for agent in agents:
        table.add_row(
            agent.id,
            agent.name,
            agent.model.name or "(default)",
            ", ".join(t.get("name") or t.get("type", "?") for t in agent.model.tools) or "-",
            ", ".join(s.name for s in agent.model.mcp_servers) or "-",
        )

    rprint(table)


@app.command("config-show")
def config_show() -> None:
    """Show resolved configuration (masks credentials)."""
    settings = SniffSettings()

    def mask(val: str | None) -> str:
        if val is None:
            return "[dim](not set)[/dim]"
        if len(val) <= 5:
            return "***"
        return f"...{val[-5:]}"

    def secret(field) -> str:
        return mask(field.get_secret_value() if field else None)

    table = Table(title="sniff Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("anthropic_api_key", secret(settings.anthropic_api_key))
    table.add_row("linear_access_token", secret(settings.linear_access_token))
    table.add_row(
        "linear_webhook_secret",
        secret(settings.linear_webhook_secret)
        if settings.linear_webhook_secret
        else "[yellow](not set, signatures not verified)[/yellow]",
    )
    table.add_row("host", settings.host)
    table.add_row("port", str(settings.port))
    table.add_row("sniff_config", str(settings.sniff_config))
    table.add_row("sniff_log_level", settings.sniff_log_level)

    rprint(table)
