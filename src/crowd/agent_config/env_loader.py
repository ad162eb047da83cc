"""Environment entries forwarded into agent containers, read with python-dotenv."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from crowd.logger import logger


class DotenvEnvLoader:
    """Merge configured base ``.env`` files with the workspace's own ``.env``.

    Later files win.  Keys declared without a value are skipped.
    """

    def __init__(self, base_files: Iterable[Path] = ()) -> None:
        self.base_files = [Path(p) for p in base_files]

    def load_env_vars(self, path: str) -> list[str]:
        files = list(self.base_files)
        if path:
            files.append(Path(path) / ".env")

        merged: dict[str, str] = {}
        for env_file in files:
            if not env_file.is_file():
                continue
            for key, value in dotenv_values(env_file).items():
                if value is None:
                    continue
                merged[key] = value
            logger.debug("Loaded env file", path=str(env_file))
        return [f"{key}={value}" for key, value in merged.items()]
