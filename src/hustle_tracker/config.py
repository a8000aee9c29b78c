"""Configuration models and helpers for the session tracker."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError

ENV_PREFIX = "HUSTLE_TRACKER_"


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the session tracker."""

    poll_interval: timedelta = timedelta(milliseconds=100)
    afk_check_interval: timedelta = timedelta(seconds=1)
    afk_threshold: timedelta = timedelta(minutes=5)
    idle_threshold: timedelta = timedelta(minutes=10)
    autosave_interval: timedelta = timedelta(hours=1)

    @classmethod
    def from_intervals(
        cls,
        poll_ms: float = 100.0,
        afk_seconds: float = 300.0,
        idle_seconds: float | None = None,
        autosave_seconds: float = 3600.0,
        afk_check_seconds: float = 1.0,
    ) -> "TrackerSettings":
        idle = idle_seconds if idle_seconds is not None else max(afk_seconds * 2, 600.0)
        settings = cls(
            poll_interval=timedelta(milliseconds=poll_ms),
            afk_check_interval=timedelta(seconds=afk_check_seconds),
            afk_threshold=timedelta(seconds=afk_seconds),
            idle_threshold=timedelta(seconds=idle),
            autosave_interval=timedelta(seconds=autosave_seconds),
        )
        settings.validate()
        return settings

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TrackerSettings":
        """Build settings from ``HUSTLE_TRACKER_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        idle = _env_float(env, "IDLE_SECONDS", None)
        return cls.from_intervals(
            poll_ms=_env_float(env, "POLL_MS", 100.0),
            afk_seconds=_env_float(env, "AFK_SECONDS", 300.0),
            idle_seconds=idle,
            autosave_seconds=_env_float(env, "AUTOSAVE_SECONDS", 3600.0),
        )

    def validate(self) -> None:
        for name in (
            "poll_interval",
            "afk_check_interval",
            "afk_threshold",
            "idle_threshold",
            "autosave_interval",
        ):
            if getattr(self, name) <= timedelta(0):
                raise ConfigurationError(f"{name} must be positive")
        if self.idle_threshold < self.afk_threshold:
            raise ConfigurationError("idle_threshold must not be shorter than afk_threshold")


def db_path_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    env = os.environ if environ is None else environ
    value = env.get(f"{ENV_PREFIX}DB")
    if value is None or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def _env_float(
    env: Mapping[str, str], name: str, default: Optional[float]
) -> Optional[float]:
    value = env.get(f"{ENV_PREFIX}{name}")
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from exc
