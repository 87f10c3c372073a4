"""Typed sink settings (one model per sink kind)."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from breadcrumbs.constants import DEFAULT_LOG_FILE_PATH

from .postgres import validate_table_identifier
from .retry import RetryPolicy

DEFAULT_WEBHOOK_TIMEOUT_MS = 3000
DEFAULT_POSTGRES_TIMEOUT_MS = 5000


class _Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class JsonlSinkSettings(_Settings):
    log_file: Path = Field(default=DEFAULT_LOG_FILE_PATH, description="JSONL output file")


class WebhookSinkSettings(_Settings):
    url: str = Field(..., description="Endpoint receiving POSTed envelopes")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    timeout_ms: int = Field(default=DEFAULT_WEBHOOK_TIMEOUT_MS, gt=0, description="Per-attempt timeout")
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("url")
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL."""
        if not v.strip():
            raise ValueError("url must be a non-empty string")
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"url must be an http(s) URL. Received: {v}")
        return v


class PostgresSinkSettings(_Settings):
    connection_string: str = Field(..., description="libpq connection string / URL")
    table: str = Field(..., description="Destination table or schema.table")
    timeout_ms: int = Field(default=DEFAULT_POSTGRES_TIMEOUT_MS, gt=0, description="Per-attempt timeout")
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("connection_string")
    def validate_connection_string(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("connection_string must be a non-empty string")
        return v

    @field_validator("table")
    def validate_table(cls, v: str) -> str:
        """Reject anything but `identifier` or `identifier.identifier`."""
        return validate_table_identifier(v)


class JsonlSinkConfig(_Settings):
    name: Literal["jsonl"] = "jsonl"
    config: JsonlSinkSettings = Field(default_factory=JsonlSinkSettings)


class WebhookSinkConfig(_Settings):
    name: Literal["webhook"] = "webhook"
    config: WebhookSinkSettings


class PostgresSinkConfig(_Settings):
    name: Literal["postgres"] = "postgres"
    config: PostgresSinkSettings


SinkConfig = Union[JsonlSinkConfig, WebhookSinkConfig, PostgresSinkConfig]

SINK_NAMES: tuple[str, ...] = ("jsonl", "webhook", "postgres")
