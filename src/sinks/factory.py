"""Build the one sink instance selected by configuration."""

from __future__ import annotations

import logging

from .base import LogSink
from .jsonl import JsonlSink
from .postgres import PostgresSink
from .settings import JsonlSinkConfig, PostgresSinkConfig, SinkConfig, WebhookSinkConfig
from .webhook import WebhookSink

logger = logging.getLogger(__name__)


def create_sink(sink_config: SinkConfig) -> LogSink:
    """Construct the sink described by an already-resolved `SinkConfig`.

    Settings are validated by the config models, so any failure here happens
    at startup, never on the first write.
    """
    if isinstance(sink_config, JsonlSinkConfig):
        sink: LogSink = JsonlSink(path=sink_config.config.log_file)
    elif isinstance(sink_config, WebhookSinkConfig):
        cfg = sink_config.config
        sink = WebhookSink(url=cfg.url, headers=dict(cfg.headers), timeout_ms=cfg.timeout_ms, retry=cfg.retry)
    elif isinstance(sink_config, PostgresSinkConfig):
        cfg = sink_config.config
        sink = PostgresSink(
            connection_string=cfg.connection_string,
            table=cfg.table,
            timeout_ms=cfg.timeout_ms,
            retry=cfg.retry,
        )
    else:
        raise ValueError(f"Unsupported sink: {getattr(sink_config, 'name', sink_config)!r}")

    logger.info("sink created: %s", sink.describe())
    return sink
