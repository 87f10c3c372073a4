"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Reading the optional JSON config file (`--config` / `AGENT_BREADCRUMBS_CONFIG`).
- Converting raw values into strongly-typed Pydantic models (sink settings,
  schema selection, server options).
- Validating everything at startup with actionable error messages that name the
  offending key, so no sink ever fails on its first write because of config.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from breadcrumbs.constants import DEFAULT_LOG_FILE_PATH
from breadcrumbs.schema import LoggingMode, ResolvedSchema, resolve_log_record_properties
from sinks.postgres import validate_table_identifier
from sinks.retry import RetryPolicy
from sinks.settings import (
    DEFAULT_POSTGRES_TIMEOUT_MS,
    DEFAULT_WEBHOOK_TIMEOUT_MS,
    SINK_NAMES,
    JsonlSinkConfig,
    JsonlSinkSettings,
    PostgresSinkConfig,
    PostgresSinkSettings,
    SinkConfig,
    WebhookSinkConfig,
    WebhookSinkSettings,
)

CONFIG_PATH_ENV = "AGENT_BREADCRUMBS_CONFIG"
LOGGING_MODE_ENV = "AGENT_BREADCRUMBS_LOGGING_MODE"

DEFAULT_RETRY_MAX_ATTEMPTS = 0
DEFAULT_RETRY_BACKOFF_MS = 250


def _get_env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    """Read an enumerated env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value not in choices:
        allowed = ", ".join(choices)
        raise ValueError(f"{name} must be one of: {allowed}. Got: {raw!r}")
    return value


def _require_object(value: Any, context: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{context} must be a JSON object")
    return value


def _require_string(value: Any, context: str) -> str:
    if not isinstance(value, str) or value.strip() == "":
        raise ValueError(f"{context} must be a non-empty string")
    return value


def _resolve_string_map(value: Any, context: str) -> dict[str, str]:
    if value is None:
        return {}
    obj = _require_object(value, context)
    resolved: dict[str, str] = {}
    for key, map_value in obj.items():
        if not isinstance(map_value, str):
            raise ValueError(f"{context}.{key} must be a string")
        resolved[key] = map_value
    return resolved


def _resolve_integer(value: Any, context: str, default: int, *, allow_zero: bool = False) -> int:
    """Read a positive (or non-negative) integer; JSON booleans are not integers."""
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{context} must be an integer")
    if value < 0 if allow_zero else value <= 0:
        raise ValueError(f"{context} must be {'>= 0' if allow_zero else '> 0'}")
    return value


def _resolve_retry(value: Any, context: str) -> RetryPolicy:
    obj = {} if value is None else _require_object(value, context)
    return RetryPolicy(
        max_attempts=_resolve_integer(
            obj.get("max_attempts"), f"{context}.max_attempts", DEFAULT_RETRY_MAX_ATTEMPTS, allow_zero=True
        ),
        backoff_ms=_resolve_integer(
            obj.get("backoff_ms"), f"{context}.backoff_ms", DEFAULT_RETRY_BACKOFF_MS, allow_zero=True
        ),
    )


def resolve_path(value: str, base_dir: Path) -> Path:
    """Expand `~` and resolve relative paths against `base_dir`."""
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return (base_dir / path).resolve()


def resolve_sink_config(
    raw_sink: Any,
    base_dir: Path,
    default_log_file: Path = DEFAULT_LOG_FILE_PATH,
) -> SinkConfig:
    """Validate the raw `sink` section and apply documented defaults.

    Omitting the section selects the JSONL sink writing to `default_log_file`.
    """
    if raw_sink is None:
        return JsonlSinkConfig(config=JsonlSinkSettings(log_file=default_log_file))

    sink_obj = _require_object(raw_sink, "config.sink")
    name = sink_obj.get("name")
    raw_config = sink_obj.get("config")

    if name == "jsonl":
        cfg = {} if raw_config is None else _require_object(raw_config, "config.sink.config")
        raw_log_file = cfg.get("log_file")
        if raw_log_file is not None and not isinstance(raw_log_file, str):
            raise ValueError("config.sink.config.log_file must be a string")
        log_file = resolve_path(raw_log_file, base_dir) if raw_log_file else default_log_file
        return JsonlSinkConfig(config=JsonlSinkSettings(log_file=log_file))

    if name == "webhook":
        cfg = _require_object(raw_config, "config.sink.config")
        url = _require_string(cfg.get("url"), "config.sink.config.url")
        if not url.lower().startswith(("http://", "https://")):
            raise ValueError(f"config.sink.config.url must be an http(s) URL. Received: {url}")
        return WebhookSinkConfig(
            config=WebhookSinkSettings(
                url=url,
                headers=_resolve_string_map(cfg.get("headers"), "config.sink.config.headers"),
                timeout_ms=_resolve_integer(
                    cfg.get("timeout_ms"), "config.sink.config.timeout_ms", DEFAULT_WEBHOOK_TIMEOUT_MS
                ),
                retry=_resolve_retry(cfg.get("retry"), "config.sink.config.retry"),
            )
        )

    if name == "postgres":
        cfg = _require_object(raw_config, "config.sink.config")
        connection_string = _require_string(cfg.get("connection_string"), "config.sink.config.connection_string")
        table = validate_table_identifier(cfg.get("table"), context="config.sink.config.table")
        return PostgresSinkConfig(
            config=PostgresSinkSettings(
                connection_string=connection_string,
                table=table,
                timeout_ms=_resolve_integer(
                    cfg.get("timeout_ms"), "config.sink.config.timeout_ms", DEFAULT_POSTGRES_TIMEOUT_MS
                ),
                retry=_resolve_retry(cfg.get("retry"), "config.sink.config.retry"),
            )
        )

    names = ", ".join(f'"{n}"' for n in SINK_NAMES)
    raise ValueError(f"config.sink.name must be one of: {names}")


def read_config_file(path: Path) -> dict[str, Any]:
    """Read and parse the JSON config file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file: {path}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file: {path} ({exc.msg})") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


class ServerConfig(BaseModel):
    """Top-level application configuration."""

    model_config = ConfigDict(frozen=True)

    config_path: Path | None = Field(default=None, description="Config file the values came from")
    logging_mode: LoggingMode = Field(default="completion", description="Default logging guidance")
    user_name: str | None = Field(default=None, description="Injected into persisted records")
    log_record_schema: ResolvedSchema = Field(..., description="log_record properties in effect")
    sink: SinkConfig = Field(..., description="Selected sink and its settings")

    @field_validator("user_name")
    def validate_user_name(cls, v: str | None) -> str | None:
        """Reject blank user names."""
        if v is not None and not v.strip():
            raise ValueError("config.user_name must be a non-empty string")
        return v


def resolve_server_config(
    raw: dict[str, Any],
    *,
    base_dir: Path,
    config_path: Path | None = None,
    logging_mode: LoggingMode = "completion",
) -> ServerConfig:
    """Validate a parsed config object (file contents) into a `ServerConfig`."""
    user_name = raw.get("user_name")
    if user_name is not None:
        user_name = _require_string(user_name, "config.user_name")

    return ServerConfig(
        config_path=config_path,
        logging_mode=logging_mode,
        user_name=user_name,
        log_record_schema=resolve_log_record_properties(raw.get("schema"), raw.get("schema_profile")),
        sink=resolve_sink_config(raw.get("sink"), base_dir),
    )


def load_config(config_path: str | None = None, logging_mode: str | None = None) -> ServerConfig:
    """Load application configuration from arguments, environment and config file.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Explicit arguments win over `AGENT_BREADCRUMBS_CONFIG` /
      `AGENT_BREADCRUMBS_LOGGING_MODE`.
    - Raises `ValueError` with actionable messages for any invalid setting.
    """
    dotenv.load_dotenv()

    mode = logging_mode or _get_env_choice(LOGGING_MODE_ENV, "completion", ("completion", "time"))
    if mode not in ("completion", "time"):
        raise ValueError('Invalid logging mode. Use "completion" or "time".')

    raw_path = config_path or os.getenv(CONFIG_PATH_ENV, "").strip() or None
    if raw_path is None:
        return resolve_server_config({}, base_dir=Path.cwd(), logging_mode=mode)  # type: ignore[arg-type]

    path = resolve_path(raw_path, Path.cwd())
    raw = read_config_file(path)
    return resolve_server_config(raw, base_dir=path.parent, config_path=path, logging_mode=mode)  # type: ignore[arg-type]
