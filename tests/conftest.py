"""Shared test fixtures for crowd."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from crowd.types import ContainerSpec, ServiceDescriptor, SpawnContext

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures — importable by test files)
# ---------------------------------------------------------------------------

# Cached property names that must be set via __dict__ (not model_construct).
_CACHED_PROPERTY_NAMES = frozenset({"project_root", "home_dir", "definitions_dir"})


def make_settings(**overrides):
    """Create a Settings object with sensible defaults for testing.

    Accepts both model fields (container, control, ...) and cached property
    overrides (project_root, home_dir, definitions_dir).

    Usage::

        s = make_settings(home_dir=tmp_path)
        s = make_settings(control=ControlConfig(port=9999))
    """
    from crowd.config import (
        AgentsConfig,
        ContainerConfig,
        ControlConfig,
        Settings,
        WorkspaceSetupConfig,
    )

    cached = {k: overrides.pop(k) for k in list(overrides) if k in _CACHED_PROPERTY_NAMES}

    defaults = {
        "container": ContainerConfig(),
        "control": ControlConfig(),
        "workspace": WorkspaceSetupConfig(),
        "agents": AgentsConfig(),
    }
    defaults.update(overrides)
    s = Settings.model_construct(**defaults)

    for key, value in cached.items():
        s.__dict__[key] = value

    return s


class FakeRuntime:
    """In-memory ContainerRuntime that records every call.

    Failures are injected through ``errors``, keyed by method name or by
    ``"<method>:<role>"`` where role is ``setup``, ``agent`` or ``volume``.
    """

    def __init__(
        self,
        *,
        volumes: list[str] | None = None,
        logs: str = "Cloning repository...\n",
        exit_code: int = 0,
    ) -> None:
        self.volumes = list(volumes or [])
        self.logs = logs
        self.exit_code = exit_code
        self.hang_logs = False
        self.errors: dict[str, BaseException] = {}
        self.calls: list[tuple[str, str]] = []
        self.created: dict[str, ContainerSpec] = {}
        self.removed: list[tuple[str, bool]] = []
        self.volume_creates: list[str] = []
        self._counter = 0

    def _role(self, container_id: str) -> str:
        spec = self.created.get(container_id)
        return "agent" if spec is not None and spec.name else "setup"

    def _maybe_fail(self, method: str, role: str) -> None:
        for key in (f"{method}:{role}", method):
            if key in self.errors:
                raise self.errors[key]

    def specs(self, role: str) -> list[ContainerSpec]:
        return [spec for cid, spec in self.created.items() if self._role(cid) == role]

    # --- volumes ---

    async def list_volumes(self) -> list[str]:
        self.calls.append(("list_volumes", ""))
        self._maybe_fail("list_volumes", "volume")
        return list(self.volumes)

    async def create_volume(self, name: str) -> None:
        self.calls.append(("create_volume", name))
        self._maybe_fail("create_volume", "volume")
        self.volume_creates.append(name)
        self.volumes.append(name)

    async def remove_volume(self, name: str) -> None:
        self.calls.append(("remove_volume", name))
        self._maybe_fail("remove_volume", "volume")
        if name not in self.volumes:
            raise RuntimeError(f"no such volume: {name}")
        self.volumes.remove(name)

    # --- containers ---

    async def create_container(self, spec: ContainerSpec) -> str:
        role = "agent" if spec.name else "setup"
        self.calls.append(("create_container", role))
        self._maybe_fail("create_container", role)
        self._counter += 1
        container_id = f"{role}-{self._counter:04d}"
        self.created[container_id] = spec
        return container_id

    async def start_container(self, container_id: str) -> None:
        self.calls.append(("start_container", container_id))
        self._maybe_fail("start_container", self._role(container_id))

    async def collect_logs(self, container_id: str) -> str:
        self.calls.append(("collect_logs", container_id))
        self._maybe_fail("collect_logs", self._role(container_id))
        if self.hang_logs:
            await asyncio.Event().wait()
        return self.logs

    async def wait_container(self, container_id: str) -> int:
        self.calls.append(("wait_container", container_id))
        self._maybe_fail("wait_container", self._role(container_id))
        return self.exit_code

    async def remove_container(self, container_id: str, *, force: bool = False) -> None:
        self.calls.append(("remove_container", container_id))
        self._maybe_fail("remove_container", self._role(container_id))
        self.removed.append((container_id, force))


class RecordingEnvLoader:
    def __init__(self, entries: list[str] | None = None) -> None:
        self.entries = entries or []
        self.paths: list[str] = []

    def load_env_vars(self, path: str) -> list[str]:
        self.paths.append(path)
        return list(self.entries)


class RecordingGenerator:
    """Returns messaging plus any extra descriptors; records its arguments."""

    def __init__(self, extra: list[ServiceDescriptor] | None = None, *, messaging: bool = True):
        self.extra = extra or []
        self.messaging = messaging
        self.calls: list[tuple[str | None, str, SpawnContext]] = []

    async def generate(
        self, agent_type: str | None, workspace_path: str, context: SpawnContext
    ) -> list[ServiceDescriptor]:
        self.calls.append((agent_type, workspace_path, context))
        descriptors = []
        if self.messaging:
            descriptors.append(
                ServiceDescriptor(
                    name="messaging",
                    type="http",
                    url=f"http://host.docker.internal:{context.control_port}/mcp",
                )
            )
        return descriptors + list(self.extra)


def make_establisher(side_effect: BaseException | None = None) -> MagicMock:
    establisher = MagicMock()
    establisher.create_session = AsyncMock(side_effect=side_effect)
    return establisher


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch, tmp_path: Path):
    """Ensure each test starts with a clean Settings singleton.

    Uses ``make_settings()`` to build from pure defaults — no config.toml,
    no .env, no file I/O.  The home dir points at an empty temp dir so the
    real ``~/.gitconfig`` never leaks into bind lists.
    """
    home = tmp_path / "home"
    home.mkdir()
    safe = make_settings(home_dir=home, project_root=tmp_path)
    monkeypatch.setattr("crowd.config._settings", safe)


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir(exist_ok=True)
    return home
