"""Centralized configuration — Pydantic BaseSettings with TOML + dotenv sources.

Settings live in config.toml. Environment variables override it using ``__``
as the nested delimiter (e.g. ``CONTROL__PORT=9999``).

Priority (highest wins): init args > env vars > .env > config.toml

Usage::

    from crowd.config import get_settings

    s = get_settings()
    print(s.container.image)
    print(s.control.port)
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models. Unknown keys are rejected."""

    model_config = {"extra": "forbid"}


class ContainerConfig(_StrictModel):
    image: str = "crowd-mcp-agent:latest"
    workspace_path: str = "/workspace"  # mount point inside agent containers
    env_files: list[str] = []  # host .env files forwarded to every agent

    @field_validator("workspace_path")
    @classmethod
    def require_absolute(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("workspace_path must be an absolute container path")
        return v.rstrip("/") or "/"


class ControlConfig(_StrictModel):
    """Control endpoint the agents call back into (the messaging MCP server)."""

    port: int = 3100
    container_host: str = "host.docker.internal"  # hostname containers use to reach host

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def url(self) -> str:
        return f"http://{self.container_host}:{self.port}/mcp"


class WorkspaceSetupConfig(_StrictModel):
    setup_timeout: float = 300.0  # seconds; bounds clone/pull in the setup container

    @field_validator("setup_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("setup_timeout must be positive")
        return v


class AgentsConfig(_StrictModel):
    # Fallback location for <agent_type>.yaml when the workspace has none
    # (isolated workspaces live in a volume the host cannot read).
    definitions_dir: str | None = None


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="config.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    container: ContainerConfig = ContainerConfig()
    control: ControlConfig = ControlConfig()
    workspace: WorkspaceSetupConfig = WorkspaceSetupConfig()
    agents: AgentsConfig = AgentsConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > config.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # --- Computed properties ---

    @cached_property
    def project_root(self) -> Path:
        return Path.cwd()

    @cached_property
    def home_dir(self) -> Path:
        return Path.home()

    @cached_property
    def definitions_dir(self) -> Path | None:
        if self.agents.definitions_dir is None:
            return None
        p = Path(self.agents.definitions_dir).expanduser()
        return p if p.is_absolute() else (self.project_root / p).resolve()


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
