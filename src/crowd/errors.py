"""Error taxonomy for agent spawning.

Every error raised out of a spawn names the agent and the failing step, and
keeps the underlying cause's message as a substring (the cause itself is
chained with ``raise ... from``).  No error here is retried automatically.
"""

from __future__ import annotations


class CrowdError(Exception):
    """Base class for agent lifecycle errors."""

    def __init__(self, agent_id: str, message: str) -> None:
        self.agent_id = agent_id
        super().__init__(message)


def _describe(cause: BaseException | str) -> str:
    if isinstance(cause, BaseException):
        return str(cause) or type(cause).__name__
    return cause


class ConfigError(CrowdError):
    """The spawn request is invalid. Raised before any runtime call."""


class VolumeError(CrowdError):
    """The per-agent volume could not be listed or created (fatal)."""

    def __init__(self, agent_id: str, cause: BaseException | str) -> None:
        super().__init__(
            agent_id, f"Failed to create volume for agent {agent_id}: {_describe(cause)}"
        )


class WorkspaceBootstrapError(CrowdError):
    """The setup container failed to seed the volume (recovered by the caller)."""

    def __init__(self, agent_id: str, cause: BaseException | str) -> None:
        super().__init__(
            agent_id,
            f"Failed to setup git workspace for agent {agent_id}: {_describe(cause)}",
        )


class ContainerCreateError(CrowdError):
    """The agent container could not be created or started."""

    def __init__(self, agent_id: str, step: str, cause: BaseException | str) -> None:
        self.step = step
        super().__init__(
            agent_id, f"Failed to {step} container for agent {agent_id}: {_describe(cause)}"
        )


class SessionEstablishError(CrowdError):
    """The control session could not be established (fatal, container is rolled back)."""

    def __init__(self, agent_id: str, cause: BaseException | str) -> None:
        super().__init__(
            agent_id,
            f"Failed to establish control session for agent {agent_id}: {_describe(cause)}",
        )


class CleanupError(CrowdError):
    """A teardown step failed. Never escapes ``cleanup_agent``."""

    def __init__(self, agent_id: str, cause: BaseException | str) -> None:
        super().__init__(agent_id, f"Failed to clean up agent {agent_id}: {_describe(cause)}")


class DockerCommandError(Exception):
    """Raised when a docker CLI command fails."""

    def __init__(self, command: str, stderr: str, returncode: int) -> None:
        self.command = command
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"docker {command} failed (exit {returncode}): {stderr}")
