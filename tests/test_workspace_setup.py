"""Tests for the workspace setup container (clone/update + agent branch)."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FakeRuntime

from crowd.container_manager import agent_branch, setup_workspace
from crowd.container_manager._workspace import SETUP_SCRIPT, build_setup_spec
from crowd.errors import DockerCommandError, WorkspaceBootstrapError
from crowd.types import BindSpec

REPO = "https://example.com/org/repo.git"


async def _setup(runtime: FakeRuntime, home_dir: Path, *, timeout: float = 5.0) -> None:
    await setup_workspace(
        runtime,
        "a1",
        REPO,
        "agent-a1-workspace",
        image="crowd-mcp-agent:latest",
        home_dir=home_dir,
        timeout=timeout,
    )


class TestSetupSpec:
    def test_repository_is_an_argument_not_script_text(self, home_dir: Path):
        hostile = "https://x/y.git; rm -rf / #"
        spec = build_setup_spec(
            "a1", hostile, "agent-a1-workspace", image="img", home_dir=home_dir
        )

        assert spec.entrypoint == "/bin/sh"
        assert spec.command[0] == "-c"
        assert spec.command[1] == SETUP_SCRIPT
        assert spec.command[3:] == [hostile, "agent-a1"]
        assert hostile not in SETUP_SCRIPT

    def test_mounts_volume_and_credentials(self, home_dir: Path):
        (home_dir / ".gitconfig").write_text("")
        spec = build_setup_spec("a1", REPO, "agent-a1-workspace", image="img", home_dir=home_dir)

        assert spec.binds == [
            BindSpec("agent-a1-workspace", "/workspace", "rw"),
            BindSpec(str(home_dir / ".gitconfig"), "/root/.gitconfig", "ro"),
        ]
        assert spec.working_dir == "/workspace"
        assert spec.name is None
        assert spec.image == "img"

    def test_script_pulls_either_primary_branch_and_tolerates_failure(self):
        assert "git pull origin main || git pull origin master || true" in SETUP_SCRIPT
        assert 'git clone -- "$1" .' in SETUP_SCRIPT
        assert 'git checkout -b "$2" 2>/dev/null || git checkout "$2"' in SETUP_SCRIPT

    def test_agent_branch_name(self):
        assert agent_branch("a1") == "agent-a1"


class TestSetupWorkspace:
    @pytest.mark.asyncio
    async def test_runs_and_removes_setup_container(self, runtime: FakeRuntime, home_dir: Path):
        await _setup(runtime, home_dir)

        (setup_id,) = runtime.created
        methods = [c for c, _ in runtime.calls]
        assert methods == [
            "create_container",
            "start_container",
            "collect_logs",
            "wait_container",
            "remove_container",
        ]
        assert runtime.removed == [(setup_id, False)]

    @pytest.mark.asyncio
    async def test_create_failure_wrapped(self, runtime: FakeRuntime, home_dir: Path):
        runtime.errors["create_container"] = DockerCommandError("create img", "no such image", 1)

        with pytest.raises(WorkspaceBootstrapError, match="agent a1.*no such image"):
            await _setup(runtime, home_dir)

        assert runtime.removed == []

    @pytest.mark.asyncio
    async def test_stream_error_removes_container(self, runtime: FakeRuntime, home_dir: Path):
        runtime.errors["collect_logs"] = DockerCommandError("logs", "stream broke", 1)

        with pytest.raises(WorkspaceBootstrapError, match="stream broke"):
            await _setup(runtime, home_dir)

        (setup_id,) = runtime.created
        assert runtime.removed == [(setup_id, True)]

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_a_failure(self, home_dir: Path):
        runtime = FakeRuntime(logs="fatal: repository not found\n", exit_code=128)

        with pytest.raises(WorkspaceBootstrapError, match="code 128.*repository not found"):
            await _setup(runtime, home_dir)

        (setup_id,) = runtime.created
        assert runtime.removed == [(setup_id, False)]

    @pytest.mark.asyncio
    async def test_removal_failure_wrapped(self, runtime: FakeRuntime, home_dir: Path):
        runtime.errors["remove_container"] = RuntimeError("removal in progress")

        with pytest.raises(WorkspaceBootstrapError, match="removal in progress"):
            await _setup(runtime, home_dir)

    @pytest.mark.asyncio
    async def test_timeout_force_removes_container(self, runtime: FakeRuntime, home_dir: Path):
        runtime.hang_logs = True

        with pytest.raises(WorkspaceBootstrapError, match="did not finish within 0.05s"):
            await _setup(runtime, home_dir, timeout=0.05)

        (setup_id,) = runtime.created
        assert runtime.removed == [(setup_id, True)]
        assert "wait_container" not in [c for c, _ in runtime.calls]

    @pytest.mark.asyncio
    async def test_force_remove_failure_after_timeout_still_raises_bootstrap_error(
        self, runtime: FakeRuntime, home_dir: Path
    ):
        runtime.hang_logs = True
        runtime.errors["remove_container"] = RuntimeError("daemon gone")

        with pytest.raises(WorkspaceBootstrapError, match="did not finish"):
            await _setup(runtime, home_dir, timeout=0.05)
