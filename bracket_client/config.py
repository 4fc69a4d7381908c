"""Configuration helpers for the bracket client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SERVER_URL = "http://localhost:3000/api"
DEFAULT_SESSION_FILE = "~/.bracket-client/session.json"


def env_str(name: str, *, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped or default


def env_int(name: str, *, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, *, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ClientConfig:
    server_url: str
    session_path: Path
    max_retries: int
    retry_backoff: float
    request_timeout: float
    lookup_timeout: float


def read_client_config() -> ClientConfig:
    return ClientConfig(
        server_url=env_str("BRACKET_SERVER_URL", default=DEFAULT_SERVER_URL).rstrip(
            "/"
        ),
        session_path=Path(
            env_str("BRACKET_SESSION_FILE", default=DEFAULT_SESSION_FILE)
        ).expanduser(),
        max_retries=max(0, env_int("BRACKET_MAX_RETRIES", default=2)),
        retry_backoff=max(0.0, env_float("BRACKET_RETRY_BACKOFF", default=0.5)),
        request_timeout=env_float("BRACKET_REQUEST_TIMEOUT", default=10.0),
        lookup_timeout=env_float("BRACKET_LOOKUP_TIMEOUT", default=5.0),
    )


__all__ = [
    "ClientConfig",
    "DEFAULT_SERVER_URL",
    "DEFAULT_SESSION_FILE",
    "env_float",
    "env_int",
    "env_str",
    "read_client_config",
]
