"""Location of the module definitions."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "acvpmeta"
DEFINITIONS_DIR_NAME: Final[str] = "definitions"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    definitions_dir: Path

    def resolve_definitions_dir(self) -> Path:
        return self.definitions_dir.expanduser().resolve()


def _default_definitions_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME / DEFINITIONS_DIR_NAME).expanduser().resolve()


def get_storage_config(definitions_dir: Path | None = None) -> StorageConfig:
    if definitions_dir is not None:
        return StorageConfig(definitions_dir=definitions_dir)
    env_dir = os.getenv("ACVP_DEFINITIONS_DIR")
    return StorageConfig(definitions_dir=Path(env_dir) if env_dir else _default_definitions_dir())
