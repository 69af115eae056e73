"""
bbl.config — Runtime settings read from the environment.

Every external call carries its own timeout; the values come from here and
are handed to each collaborator when bbl.cli wires them together.

Environment:
    BBL_LOG_LEVEL                      diagnostic log level (default WARNING)
    BBL_BOSH_INIT_PATH                 bosh-init executable (default bosh-init)
    BBL_STACK_POLL_INTERVAL_SECONDS    stack status poll interval (default 15)
    BBL_STACK_TIMEOUT_SECONDS          stack convergence timeout (default 3600)
    BBL_BOSH_TIMEOUT_SECONDS           director HTTP request timeout (default 30)
    BBL_BOSH_TASK_TIMEOUT_SECONDS      director task wait timeout (default 1800)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from bbl.errors import ValidationError

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_BOSH_INIT_PATH = "bosh-init"
DEFAULT_STACK_POLL_INTERVAL_SECONDS = 15.0
DEFAULT_STACK_TIMEOUT_SECONDS = 3600.0
DEFAULT_BOSH_TIMEOUT_SECONDS = 30.0
DEFAULT_BOSH_TASK_TIMEOUT_SECONDS = 1800.0

ENV_ACCESS_KEY_ID = "BBL_AWS_ACCESS_KEY_ID"
ENV_SECRET_ACCESS_KEY = "BBL_AWS_SECRET_ACCESS_KEY"  # pragma: allowlist secret
ENV_REGION = "BBL_AWS_REGION"


@dataclass(frozen=True)
class Settings:
    log_level: str = DEFAULT_LOG_LEVEL
    bosh_init_path: str = DEFAULT_BOSH_INIT_PATH
    stack_poll_interval_seconds: float = DEFAULT_STACK_POLL_INTERVAL_SECONDS
    stack_timeout_seconds: float = DEFAULT_STACK_TIMEOUT_SECONDS
    bosh_timeout_seconds: float = DEFAULT_BOSH_TIMEOUT_SECONDS
    bosh_task_timeout_seconds: float = DEFAULT_BOSH_TASK_TIMEOUT_SECONDS


def _seconds(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {raw!r}")
    return value


def _log_level(environ: Mapping[str, str]) -> str:
    level = environ.get("BBL_LOG_LEVEL", "").strip().upper() or DEFAULT_LOG_LEVEL
    if level not in logging.getLevelNamesMapping():
        raise ValidationError(f"BBL_LOG_LEVEL must be a logging level name, got {level!r}")
    return level


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the process environment (or the given mapping)."""
    env = os.environ if environ is None else environ
    return Settings(
        log_level=_log_level(env),
        bosh_init_path=env.get("BBL_BOSH_INIT_PATH", "").strip() or DEFAULT_BOSH_INIT_PATH,
        stack_poll_interval_seconds=_seconds(
            env, "BBL_STACK_POLL_INTERVAL_SECONDS", DEFAULT_STACK_POLL_INTERVAL_SECONDS
        ),
        stack_timeout_seconds=_seconds(
            env, "BBL_STACK_TIMEOUT_SECONDS", DEFAULT_STACK_TIMEOUT_SECONDS
        ),
        bosh_timeout_seconds=_seconds(
            env, "BBL_BOSH_TIMEOUT_SECONDS", DEFAULT_BOSH_TIMEOUT_SECONDS
        ),
        bosh_task_timeout_seconds=_seconds(
            env, "BBL_BOSH_TASK_TIMEOUT_SECONDS", DEFAULT_BOSH_TASK_TIMEOUT_SECONDS
        ),
    )
