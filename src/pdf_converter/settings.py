"""Environment overrides layered on top of ``config.toml``."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .config import AppConfig

DEFAULT_CONFIG_PATH = Path("config.toml")
ENV_PREFIX = "IPC_"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class Settings:
    config_path: Path = DEFAULT_CONFIG_PATH
    enable_local_api: bool | None = None
    output_dir: Path | None = None
    public_dir: Path | None = None

    def apply(self, config: AppConfig) -> AppConfig:
        """Write the values set in the environment over *config*."""
        runtime = config.runtime
        if self.enable_local_api is not None:
            runtime.enable_local_api = self.enable_local_api
        if self.output_dir is not None:
            runtime.output_dir = self.output_dir
        if self.public_dir is not None:
            runtime.public_dir = self.public_dir
        return config


def _env(name: str) -> str | None:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _flag(value: str | None) -> bool | None:
    if value is None:
        return None
    lowered = value.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    return None


def _path(value: str | None) -> Path | None:
    return Path(value) if value else None


@lru_cache
def get_settings() -> Settings:
    """Read ``IPC_*`` variables once per process."""
    return Settings(
        config_path=_path(_env("CONFIG_PATH")) or DEFAULT_CONFIG_PATH,
        enable_local_api=_flag(_env("ENABLE_LOCAL_API")),
        output_dir=_path(_env("OUTPUT_DIR")),
        public_dir=_path(_env("PUBLIC_DIR")),
    )


__all__ = ["Settings", "get_settings", "DEFAULT_CONFIG_PATH", "ENV_PREFIX"]
