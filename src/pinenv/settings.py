# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Runtime settings resolved from defaults and environment overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ManifestError

STORE_DIR_ENV: Final[str] = "PINENV_STORE_DIR"
FETCH_TIMEOUT_ENV: Final[str] = "PINENV_FETCH_TIMEOUT"
JOBS_ENV: Final[str] = "PINENV_JOBS"

DEFAULT_FETCH_TIMEOUT: Final[float] = 120.0


def default_store_dir() -> Path:
    """Return the default snapshot store directory."""

    cache_home = os.environ.get("XDG_CACHE_HOME")
    base = Path(cache_home) if cache_home else Path.home() / ".cache"
    return base / "pinenv" / "store"


class Settings(BaseModel):
    """Process settings shared by the fetchers and the driver."""

    model_config = ConfigDict(frozen=True)

    store_dir: Path = Field(default_factory=default_store_dir)
    fetch_timeout: float = Field(default=DEFAULT_FETCH_TIMEOUT, gt=0)
    jobs: int = Field(default=1, ge=1)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides: object) -> Settings:
        """Build settings from ``env`` with explicit ``overrides`` taking precedence.

        Args:
            env: Environment mapping, defaults to ``os.environ``.
            **overrides: Field values supplied by the caller (``None`` is ignored).

        Returns:
            Settings: Validated settings instance.

        Raises:
            ManifestError: If an environment or override value is invalid.
        """

        source = os.environ if env is None else env
        data: dict[str, object] = {}
        if value := source.get(STORE_DIR_ENV):
            data["store_dir"] = Path(value).expanduser()
        if value := source.get(FETCH_TIMEOUT_ENV):
            data["fetch_timeout"] = value
        if value := source.get(JOBS_ENV):
            data["jobs"] = value
        data.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ManifestError(f"Invalid settings: {exc}") from exc


__all__ = [
    "DEFAULT_FETCH_TIMEOUT",
    "FETCH_TIMEOUT_ENV",
    "JOBS_ENV",
    "STORE_DIR_ENV",
    "Settings",
    "default_store_dir",
]
