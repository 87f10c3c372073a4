"""Command-line entrypoint for the `log_work` tool.

Loads configuration, builds the configured sink and the tool, runs one
`log_work` call and prints the tool result as JSON:

    python src/main.py --config server-config.json '{"log_record": {"work_summary": "done"}}'
    echo '{"log_record": {...}}' | python src/main.py --config server-config.json

`--list-tools` prints the tool description instead. The exit status is 0 when
the record was persisted, 2 when the call was rejected or delivery failed, and
1 on startup errors.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from breadcrumbs.constants import SERVER_NAME, SERVER_VERSION
from breadcrumbs.tool import LogWorkTool
from config import ServerConfig, load_config
from logging_setup import configure_logging
from sinks import create_sink

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=SERVER_NAME, description="Persist one log_work record.")
    parser.add_argument("arguments", nargs="?", help="log_work arguments as JSON (default: read stdin)")
    parser.add_argument("--config", dest="config_path", help="JSON config file (schema, sink, user_name)")
    parser.add_argument("--logging-mode", choices=["completion", "time"], help="Default logging guidance mode")
    parser.add_argument("--list-tools", action="store_true", help="Print the tool description and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")
    return parser


def build_tool(cfg: ServerConfig) -> LogWorkTool:
    """Wire the configured sink into a `LogWorkTool`."""
    return LogWorkTool(
        sink=create_sink(cfg.sink),
        schema=cfg.log_record_schema,
        logging_mode=cfg.logging_mode,
        user_name=cfg.user_name,
    )


async def run(cfg: ServerConfig, raw_arguments: Any | None, *, list_tools: bool = False) -> dict[str, Any]:
    """Run a single call (or tool listing) and always release the sink."""
    tool = build_tool(cfg)
    try:
        if list_tools:
            return {"tools": tool.list_tools()}
        return await tool.call_tool("log_work", raw_arguments)
    finally:
        await tool.aclose()


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for `python src/main.py` / the `agent-breadcrumbs` script."""
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        cfg = load_config(config_path=args.config_path, logging_mode=args.logging_mode)
        raw_arguments = None
        if not args.list_tools:
            text = args.arguments if args.arguments is not None else sys.stdin.read()
            raw_arguments = json.loads(text) if text.strip() else {}
    except (ValueError, OSError) as exc:
        print(f"{SERVER_NAME} failed to start: {exc}", file=sys.stderr)
        return 1

    logger.info("%s %s starting (sink=%s)", SERVER_NAME, SERVER_VERSION, cfg.sink.name)
    result = asyncio.run(run(cfg, raw_arguments, list_tools=args.list_tools))
    print(json.dumps(result, indent=2))
    return 2 if result.get("isError") else 0


if __name__ == "__main__":
    sys.exit(main())
