#!/usr/bin/env python3
"""
speedstream -- streaming bandwidth test server and terminal client.

Usage::

    python speedtest.py serve                       # serve page + payloads on :8080
    python speedtest.py serve --port 9000 --max-mb 2000
    python speedtest.py run                         # rich progress bar
    python speedtest.py run --url http://host:8080 --size 200
    python speedtest.py run --simple                # plain text
    python speedtest.py run --json                  # JSON to stdout
    python speedtest.py run -o result.json          # save to file
    python speedtest.py run --timeout 5             # stop after 5 seconds
    python speedtest.py run --repeat 3 --interval 10
    python speedtest.py config                      # show config
    python speedtest.py config port 9000            # set a value
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Any, Dict, Optional

from client.config import (
    DEFAULTS,
    coerce_value,
    config_path,
    get_config_value,
    load_config,
    set_config_value,
)
from client.constants import MAX_PORT, MAX_REPEAT, MIN_PORT, MIN_REPEAT
from client.download import ERROR, ThroughputEstimator, TransferSession
from server.app import ServerSettings, run_server
from server.sizes import SizeLimits
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_header,
    print_server_banner,
    print_session_result,
    setup_logging,
)
from ui.output import create_result_json, format_text_result, save_json


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    size_mb: int,
    repeat: int,
    interval: float,
    timeout: Optional[float] = None,
) -> None:
    """Raise ``ValueError`` if any ``run`` parameter is out of range."""
    if size_mb < 1:
        raise ValueError("Size must be at least 1 MiB")
    if not MIN_REPEAT <= repeat <= MAX_REPEAT:
        raise ValueError(f"Repeat must be between {MIN_REPEAT} and {MAX_REPEAT}")
    if interval < 0:
        raise ValueError("Interval must not be negative")
    if timeout is not None and timeout <= 0:
        raise ValueError("Timeout must be positive")


def _build_settings(config: Dict[str, Any]) -> ServerSettings:
    """Turn merged config values into ``ServerSettings`` (raises ``ValueError``)."""
    port = int(config["port"])
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"Port must be between {MIN_PORT} and {MAX_PORT}")
    limits = SizeLimits(
        min_mb=int(config["min_mb"]),
        max_mb=int(config["max_mb"]),
        default_mb=int(config["default_mb"]),
    )
    return ServerSettings(
        limits=limits,
        chunk_size=int(config["chunk_size"]),
        locations_url=str(config["locations_url"]),
    )


def _merge(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(config)
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return merged


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    estimator: ThroughputEstimator,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    timeout: Optional[float] = None,
) -> Optional[TransferSession]:
    """Run one measurement with *estimator* and report it."""

    show_ui = not json_output and not simple

    if show_ui:
        console.print(f"[dim]Downloading {estimator.url}[/dim]")
        progress = ProgressDisplay()
        progress.start("Downloading")
        estimator.on_progress = lambda p, s: progress.update(p, s)

    timer = None
    if timeout:
        timer = asyncio.get_running_loop().call_later(timeout, estimator.stop)

    try:
        session = await estimator.start()
    finally:
        if timer is not None:
            timer.cancel()
        if show_ui:
            progress.stop()
            estimator.on_progress = None

    if session is None:
        return None

    if show_ui:
        print_session_result(session)
    elif simple:
        print(format_text_result(session))

    result_json = create_result_json(session)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return session


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def _cmd_serve(args: argparse.Namespace) -> int:
    config = _merge(
        load_config(),
        {
            "host": args.host,
            "port": args.port,
            "min_mb": args.min_mb,
            "max_mb": args.max_mb,
            "default_mb": args.default_mb,
            "chunk_size": args.chunk_size,
        },
    )
    settings = _build_settings(config)

    print_server_banner(
        config["host"], int(config["port"]),
        settings.limits.min_mb, settings.limits.max_mb, settings.limits.default_mb,
    )
    run_server(settings, host=config["host"], port=int(config["port"]))
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    config = _merge(load_config(), {"url": args.url, "size_mb": args.size})
    size_mb = int(config["size_mb"])
    _validate(size_mb, args.repeat, args.interval, args.timeout)

    show_ui = not args.json and not args.simple
    if show_ui:
        print_header()

    estimator = ThroughputEstimator(base_url=config["url"], size_mb=size_mb)
    failed = False

    for run_idx in range(args.repeat):
        if args.repeat > 1 and show_ui:
            console.print(f"\n[bold cyan]--- Run {run_idx + 1}/{args.repeat} ---[/bold cyan]")

        session = asyncio.run(
            run_speedtest(
                estimator,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                timeout=args.timeout,
            )
        )
        if session is not None and session.status == ERROR:
            failed = True

        # Wait between runs (but not after the last one)
        if run_idx < args.repeat - 1:
            if show_ui:
                console.print(f"[dim]Next run in {args.interval:.0f}s...[/dim]")
            time.sleep(args.interval)

    return 1 if failed else 0


def _cmd_config(args: argparse.Namespace) -> int:
    if args.key is None:
        console.print(f"[dim]{config_path()}[/dim]")
        for key, value in load_config().items():
            console.print(f"  {key:<14} {value}")
        return 0

    if args.key not in DEFAULTS:
        raise ValueError(f"Unknown config key: {args.key}")

    if args.value is None:
        console.print(str(get_config_value(args.key)))
        return 0

    path = set_config_value(args.key, coerce_value(args.key, args.value))
    console.print(f"[green]Saved[/green] {args.key} = {args.value} [dim]({path})[/dim]")
    return 0


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="speedstream -- streaming bandwidth test server and client",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # serve
    p_serve = sub.add_parser("serve", help="Serve the speed test page and payload stream")
    p_serve.add_argument("--host", type=str, help="Bind address (default: 0.0.0.0)")
    p_serve.add_argument("--port", type=int, help="Bind port (default: 8080)")
    p_serve.add_argument("--min-mb", type=int, metavar="MB", help="Smallest accepted size in MiB (default: 10)")
    p_serve.add_argument("--max-mb", type=int, metavar="MB", help="Largest accepted size in MiB (default: 1000)")
    p_serve.add_argument("--default-mb", type=int, metavar="MB", help="Size used by the page and /download (default: 100)")
    p_serve.add_argument("--chunk-size", type=int, metavar="BYTES", help="Bytes per write, 65536-1048576 (default: 65536)")

    # run
    p_run = sub.add_parser("run", help="Measure download throughput from a server")
    p_run.add_argument("--url", type=str, help="Server base URL (default: http://127.0.0.1:8080)")
    p_run.add_argument("--size", type=int, metavar="MB", help="Payload size in MiB (default: 100)")
    p_run.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    p_run.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    p_run.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    p_run.add_argument("--timeout", type=float, metavar="SECS", help="Stop the transfer after SECS seconds")
    p_run.add_argument("--repeat", type=int, default=1, metavar="N", help="Run the test N times (default: 1)")
    p_run.add_argument("--interval", type=float, default=0.0, metavar="SECS", help="Seconds between repeated tests (default: 0)")

    # config
    p_cfg = sub.add_parser("config", help="Show or change saved settings")
    p_cfg.add_argument("key", nargs="?", help="Config key")
    p_cfg.add_argument("value", nargs="?", help="New value")

    return parser


_COMMANDS = {
    "serve": _cmd_serve,
    "run": _cmd_run,
    "config": _cmd_config,
}


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)

    if args.verbose:
        setup_logging(logging.DEBUG)
    elif args.command == "serve":
        setup_logging(logging.INFO)
    else:
        setup_logging(logging.WARNING)

    try:
        code = _COMMANDS[args.command](args)
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
