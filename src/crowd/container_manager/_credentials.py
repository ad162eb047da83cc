"""Read-only mounts of the host's git identity and stored credentials.

Containers that clone or push need the user's ``.gitconfig`` (name/email,
URL rewrites) and ``.git-credentials`` (HTTPS tokens).  Neither is required:
a missing file simply produces no mount.
"""

from __future__ import annotations

from pathlib import Path

from crowd.types import BindSpec

# (file under the host home dir, target inside the container)
_GIT_CREDENTIAL_FILES = (
    (".gitconfig", "/root/.gitconfig"),
    (".git-credentials", "/root/.git-credentials"),
)


def build_git_binds(home_dir: Path) -> list[BindSpec]:
    """Return read-only binds for whichever git credential files exist under *home_dir*."""
    binds: list[BindSpec] = []
    for name, target in _GIT_CREDENTIAL_FILES:
        host_path = home_dir / name
        if host_path.is_file():
            binds.append(BindSpec(str(host_path), target, "ro"))
    return binds
