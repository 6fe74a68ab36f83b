"""
lambda_deploy.config: Retry ceilings, call timeouts and artifact candidates.

All values come from environment variables with the defaults below. The CLI
layers its flags on top via DeployConfig.with_overrides().
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from lambda_deploy.exceptions import ConfigurationError

DEFAULT_READINESS_ATTEMPTS = 20
DEFAULT_READINESS_DELAY_SECONDS = 3.0
DEFAULT_PUBLISH_ATTEMPTS = 5
DEFAULT_PUBLISH_RETRY_DELAY_SECONDS = 3.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_READ_TIMEOUT_SECONDS = 10.0
DEFAULT_POLL_TIMEOUT_SECONDS = 30.0
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 300.0
DEFAULT_ARTIFACT_PATHS: tuple[str, ...] = ("dist/index.zip", "dist/bootstrap.zip")

_ENV_PREFIX = "LAMBDA_DEPLOY_"
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class DeployConfig:
    readiness_attempts: int = DEFAULT_READINESS_ATTEMPTS
    readiness_delay_seconds: float = DEFAULT_READINESS_DELAY_SECONDS
    publish_attempts: int = DEFAULT_PUBLISH_ATTEMPTS
    publish_retry_delay_seconds: float = DEFAULT_PUBLISH_RETRY_DELAY_SECONDS
    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    read_timeout_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS
    poll_timeout_seconds: float = DEFAULT_POLL_TIMEOUT_SECONDS
    upload_timeout_seconds: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS
    artifact_paths: tuple[str, ...] = DEFAULT_ARTIFACT_PATHS
    verify_alias: bool = True
    verbose: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DeployConfig:
        """Build a config from LAMBDA_DEPLOY_* variables (and DEBUG for verbosity).

        Raises ConfigurationError on non-numeric, non-positive or unparseable values.
        """
        env = os.environ if environ is None else environ
        return cls(
            readiness_attempts=_positive_int(env, "READINESS_ATTEMPTS", DEFAULT_READINESS_ATTEMPTS),
            readiness_delay_seconds=_non_negative_float(
                env, "READINESS_DELAY_SECONDS", DEFAULT_READINESS_DELAY_SECONDS
            ),
            publish_attempts=_positive_int(env, "PUBLISH_ATTEMPTS", DEFAULT_PUBLISH_ATTEMPTS),
            publish_retry_delay_seconds=_non_negative_float(
                env, "PUBLISH_RETRY_DELAY_SECONDS", DEFAULT_PUBLISH_RETRY_DELAY_SECONDS
            ),
            connect_timeout_seconds=_positive_float(
                env, "CONNECT_TIMEOUT_SECONDS", DEFAULT_CONNECT_TIMEOUT_SECONDS
            ),
            read_timeout_seconds=_positive_float(
                env, "READ_TIMEOUT_SECONDS", DEFAULT_READ_TIMEOUT_SECONDS
            ),
            poll_timeout_seconds=_positive_float(
                env, "POLL_TIMEOUT_SECONDS", DEFAULT_POLL_TIMEOUT_SECONDS
            ),
            upload_timeout_seconds=_positive_float(
                env, "UPLOAD_TIMEOUT_SECONDS", DEFAULT_UPLOAD_TIMEOUT_SECONDS
            ),
            artifact_paths=_path_list(env, "ARTIFACT_PATHS", DEFAULT_ARTIFACT_PATHS),
            verify_alias=_flag(env, f"{_ENV_PREFIX}VERIFY_ALIAS", default=True),
            verbose=_debug_enabled(env),
        )

    def with_overrides(self, **changes: Any) -> DeployConfig:
        """Return a copy with the given fields replaced; None values are ignored."""
        return dataclasses.replace(
            self, **{key: value for key, value in changes.items() if value is not None}
        )


def _raw(env: Mapping[str, str], suffix: str) -> str | None:
    value = env.get(f"{_ENV_PREFIX}{suffix}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _positive_int(env: Mapping[str, str], suffix: str, default: int) -> int:
    raw = _raw(env, suffix)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_ENV_PREFIX}{suffix} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ConfigurationError(f"{_ENV_PREFIX}{suffix} must be >= 1, got {value}")
    return value


def _float(env: Mapping[str, str], suffix: str, default: float) -> float:
    raw = _raw(env, suffix)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_ENV_PREFIX}{suffix} must be a number, got {raw!r}") from exc


def _positive_float(env: Mapping[str, str], suffix: str, default: float) -> float:
    value = _float(env, suffix, default)
    if value <= 0:
        raise ConfigurationError(f"{_ENV_PREFIX}{suffix} must be > 0, got {value}")
    return value


def _non_negative_float(env: Mapping[str, str], suffix: str, default: float) -> float:
    value = _float(env, suffix, default)
    if value < 0:
        raise ConfigurationError(f"{_ENV_PREFIX}{suffix} must be >= 0, got {value}")
    return value


def _path_list(env: Mapping[str, str], suffix: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _raw(env, suffix)
    if raw is None:
        return default
    paths = tuple(part.strip() for part in raw.split(",") if part.strip())
    if not paths:
        raise ConfigurationError(f"{_ENV_PREFIX}{suffix} must name at least one path")
    return paths


def _debug_enabled(env: Mapping[str, str]) -> bool:
    # Any unrecognised DEBUG value leaves verbose logging off.
    return env.get("DEBUG", "").strip().lower() in _TRUTHY


def _flag(env: Mapping[str, str], name: str, *, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag, got {raw!r}")
