"""Docker CLI runtime — subprocess wrappers behind the ContainerRuntime protocol.

All public methods are async so they don't block the event loop.  One-shot
commands run in a thread via ``asyncio.to_thread``; the followed log stream
is read from an asyncio subprocess.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import subprocess

from crowd.errors import DockerCommandError
from crowd.logger import logger
from crowd.types import ContainerSpec

_CREATE_TIMEOUT = 300  # create may pull the image

# Variables the docker CLI reads for itself; never overridden by container env.
_CLI_ENV_KEYS = frozenset({"PATH", "HOME", "TMPDIR", "LD_LIBRARY_PATH", "LD_PRELOAD"})
_CLI_ENV_PREFIXES = ("DOCKER_", "XDG_")


def _affects_cli(key: str) -> bool:
    return key in _CLI_ENV_KEYS or key.startswith(_CLI_ENV_PREFIXES)


def _run_docker_sync(
    *args: str,
    check: bool = True,
    timeout: int = 30,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a ``docker`` CLI command (blocking — internal only)."""
    return subprocess.run(
        ["docker", *args],
        capture_output=True,
        text=True,
        timeout=timeout,
        check=check,
        env=env,
    )


async def run_docker(
    *args: str,
    check: bool = True,
    timeout: int = 30,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a ``docker`` CLI command without blocking the event loop."""
    return await asyncio.to_thread(_run_docker_sync, *args, check=check, timeout=timeout, env=env)


def require_success(result: subprocess.CompletedProcess[str], command: str) -> str:
    """Raise DockerCommandError unless the command succeeded; return stripped stdout."""
    if result.returncode != 0:
        raise DockerCommandError(command, result.stderr.strip(), result.returncode)
    return result.stdout.strip()


def build_create_args(spec: ContainerSpec) -> tuple[list[str], dict[str, str]]:
    """Build ``docker create`` args plus the env the CLI must run with.

    Env entries are passed as bare ``-e KEY`` so the CLI reads each value from
    its own environment: values stay out of the process table and may contain
    newlines.  Keys the docker CLI itself reads (``PATH``, ``HOME``,
    ``DOCKER_*``, ...) are passed inline as ``-e KEY=VALUE`` instead, leaving
    the CLI environment untouched.
    """
    args = ["create"]
    if spec.name:
        args.extend(["--name", spec.name])
    # -i alone sets both OpenStdin and AttachStdin on create
    if spec.open_stdin or spec.attach_stdin:
        args.append("-i")
    if spec.tty:
        args.append("-t")
    if spec.entrypoint:
        args.extend(["--entrypoint", spec.entrypoint])
    if spec.working_dir:
        args.extend(["-w", spec.working_dir])
    for host in spec.extra_hosts:
        args.extend(["--add-host", host])
    for bind in spec.binds:
        args.extend(["-v", str(bind)])

    values: dict[str, str] = {}
    for entry in spec.env:
        key, sep, value = entry.partition("=")
        if not key or not sep:
            logger.warning("Skipping malformed env entry", key=key)
            continue
        values[key] = value

    forwarded: dict[str, str] = {}
    for key, value in values.items():
        if _affects_cli(key):
            args.extend(["-e", f"{key}={value}"])
        else:
            args.extend(["-e", key])
            forwarded[key] = value

    args.append(spec.image)
    args.extend(spec.command)
    return args, {**os.environ, **forwarded}


class DockerRuntime:
    """ContainerRuntime backed by the local ``docker`` CLI."""

    name = "docker"

    async def list_volumes(self) -> list[str]:
        result = await run_docker("volume", "ls", "--format", "{{.Name}}", check=False)
        out = require_success(result, "volume ls")
        return [line for line in out.splitlines() if line]

    async def create_volume(self, name: str) -> None:
        result = await run_docker("volume", "create", name, check=False)
        require_success(result, f"volume create {name}")

    async def remove_volume(self, name: str) -> None:
        result = await run_docker("volume", "rm", name, check=False)
        require_success(result, f"volume rm {name}")

    async def create_container(self, spec: ContainerSpec) -> str:
        args, env = build_create_args(spec)
        result = await run_docker(*args, check=False, timeout=_CREATE_TIMEOUT, env=env)
        container_id = require_success(result, f"create {spec.name or spec.image}")
        logger.debug("Created container", container=spec.name, container_id=container_id[:12])
        return container_id

    async def start_container(self, container_id: str) -> None:
        result = await run_docker("start", container_id, check=False)
        require_success(result, f"start {container_id[:12]}")

    async def collect_logs(self, container_id: str) -> str:
        proc = await asyncio.create_subprocess_exec(
            "docker",
            "logs",
            "--follow",
            container_id,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        assert proc.stdout is not None
        chunks: list[str] = []
        try:
            while True:
                chunk = await proc.stdout.read(8192)
                if not chunk:
                    break
                text = chunk.decode(errors="replace")
                chunks.append(text)
                for line in text.strip().splitlines():
                    if line:
                        logger.debug(line, container_id=container_id[:12])
            await proc.wait()
        finally:
            # Cancelled (e.g. by a timeout) while following: stop the follower
            if proc.returncode is None:
                proc.kill()
                with contextlib.suppress(ProcessLookupError):
                    await proc.wait()

        output = "".join(chunks)
        if proc.returncode != 0:
            raise DockerCommandError(f"logs {container_id[:12]}", output.strip(), proc.returncode)
        return output

    async def wait_container(self, container_id: str) -> int:
        # Generous ceiling; callers bound the whole setup run themselves.
        result = await run_docker("wait", container_id, check=False, timeout=3600)
        out = require_success(result, f"wait {container_id[:12]}")
        try:
            return int(out.splitlines()[-1])
        except (IndexError, ValueError) as exc:
            raise DockerCommandError(f"wait {container_id[:12]}", f"bad exit code {out!r}", 0) from exc

    async def remove_container(self, container_id: str, *, force: bool = False) -> None:
        args = ["rm", "-f", container_id] if force else ["rm", container_id]
        result = await run_docker(*args, check=False)
        require_success(result, " ".join(args[:-1] + [container_id[:12]]))
