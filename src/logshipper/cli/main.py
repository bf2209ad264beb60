"""
Command-line entry point for logshipper.

Reads newline-delimited JSON log records from stdin and ships them through a
``LogTransport``:

    node app.js | logshipper --service checkout --ddsource nodejs

Settings come from ``LOGSHIPPER_*`` environment variables; flags override
them.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from typing import Any, AsyncIterator, Sequence

import orjson

from ..core.settings import Settings
from ..core.transport import LogTransport


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logshipper",
        description="Ship NDJSON log records from stdin to a log intake endpoint",
    )
    parser.add_argument("--service", type=str, default=None)
    parser.add_argument("--ddsource", type=str, default=None)
    parser.add_argument("--ddtags", type=str, default=None)
    parser.add_argument("--site", type=str, default=None)
    parser.add_argument("--url", type=str, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--send-interval-ms", type=int, default=None)
    parser.add_argument("--send-immediate", action="store_true", default=False)
    parser.add_argument("--debug", action="store_true", default=False)
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    transport: dict[str, Any] = {}
    for name in ("service", "ddsource", "ddtags", "retries", "send_interval_ms"):
        value = getattr(args, name)
        if value is not None:
            transport[name] = value
    if args.send_immediate:
        transport["send_immediate"] = True
    intake: dict[str, Any] = {}
    if args.site is not None:
        intake["site"] = args.site
    if args.url is not None:
        intake["url"] = args.url
    # Round-trip through validation so overrides obey the same rules
    data = settings.model_dump()
    data["transport"].update(transport)
    data["intake"].update(intake)
    return Settings.model_validate(data)


def parse_line(line: str) -> dict[str, Any] | None:
    """Parse one NDJSON line; non-JSON text becomes ``{"msg": line}``."""
    line = line.strip()
    if not line:
        return None
    try:
        value = orjson.loads(line)
    except orjson.JSONDecodeError:
        return {"msg": line, "time": int(time.time() * 1000)}
    if isinstance(value, dict):
        return value
    return {"msg": value, "time": int(time.time() * 1000)}


async def read_stdin_records() -> AsyncIterator[dict[str, Any]]:
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        record = parse_line(line)
        if record is not None:
            yield record


def _stderr_on_error(err: BaseException, items: Sequence[dict[str, Any]] | None) -> None:
    count = len(items) if items else 0
    sys.stderr.write(f"logshipper: {err} ({count} item(s))\n")
    sys.stderr.flush()


def _stderr_on_debug(message: str) -> None:
    sys.stderr.write(f"logshipper: {message}\n")
    sys.stderr.flush()


async def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        settings = _apply_overrides(Settings(), args)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    transport = LogTransport(
        settings,
        on_error=_stderr_on_error,
        on_debug=_stderr_on_debug if args.debug else None,
    )
    try:
        await transport.start()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    try:
        await transport.process(read_stdin_records())
    finally:
        await transport.stop()
    return 0


def cli_main() -> int:
    """CLI main function for non-async entry."""
    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(cli_main())
