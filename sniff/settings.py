"""Settings from the environment, agent definitions from sniff.toml."""

from pathlib import Path

import tomlkit
import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from sniff.models import AgentDefinition

DEFAULT_CONFIG_PATH = Path("sniff.toml")


class SniffSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Reasoning backend
    anthropic_api_key: SecretStr | None = None

    # Linear
    linear_access_token: SecretStr | None = None
    linear_webhook_secret: SecretStr | None = None  # unset disables signature checks

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    sniff_config: Path = DEFAULT_CONFIG_PATH
    sniff_log_level: str = "INFO"


def get_settings(**overrides: object) -> SniffSettings:
    """Build settings from env + .env and fail fast on missing credentials.

    Keyword overrides (e.g. from CLI flags) win over the environment.
    """
    settings = SniffSettings(**{k: v for k, v in overrides.items() if v is not None})  # type: ignore[arg-type]

    if not settings.anthropic_api_key:
        typer.echo("Missing required environment variable: ANTHROPIC_API_KEY")
        raise typer.Exit(1)
    if not settings.linear_access_token:
        typer.echo("Missing required environment variable: LINEAR_ACCESS_TOKEN")
        raise typer.Exit(1)

    return settings


def _load_toml(path: Path) -> dict:
    """Load an agents file as plain python values, empty if missing."""
    if not path.exists():
        return {}
    with path.open() as f:
        return tomlkit.load(f).unwrap()


def load_agents(path: Path = DEFAULT_CONFIG_PATH) -> list[AgentDefinition]:
    """Read the [[agents]] array. Order is preserved; the server routes to the first."""
    config = _load_toml(path)
    return [AgentDefinition.model_validate(agent) for agent in config.get("agents", [])]
