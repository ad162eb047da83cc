"""Container runtime contract.

The orchestrator only talks to the runtime through this protocol, so tests
can swap in an in-memory fake.  The built-in implementation is
:class:`crowd.container_manager.DockerRuntime`.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from crowd.types import ContainerSpec


@runtime_checkable
class ContainerRuntime(Protocol):
    async def list_volumes(self) -> list[str]: ...
    async def create_volume(self, name: str) -> None: ...
    async def remove_volume(self, name: str) -> None: ...

    async def create_container(self, spec: ContainerSpec) -> str:
        """Create (but don't start) a container and return its runtime ID."""
        ...

    async def start_container(self, container_id: str) -> None: ...

    async def collect_logs(self, container_id: str) -> str:
        """Follow the combined stdout/stderr stream until it ends, return it."""
        ...

    async def wait_container(self, container_id: str) -> int:
        """Block until the container exits, return its exit code."""
        ...

    async def remove_container(self, container_id: str, *, force: bool = False) -> None: ...
