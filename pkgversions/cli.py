"""
cli.py

Responsibility: CLI entrypoint for pkgversions; stands in for the host build tool.

Commands:
- `resolve`: one aggregation pass, then print / write / render the version map
- `watch`: publish once, then republish after every change to a matched file

This module should orchestrate behavior but keep concerns isolated:
- Parsing + field extraction: `config_parser.py`
- Disk access + change polling: `sources.py`
- Aggregation + last-known-good: `aggregator.py`
- Output: `renderer.py`
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Mapping
from pathlib import Path

from pkgversions.aggregator import PackageVersionAggregator
from pkgversions.config_parser import AggregationError
from pkgversions.logging import get_logger
from pkgversions.renderer import RenderError, render_versions, write_versions_json
from pkgversions.sources import LocalFileSource

logger = get_logger("pkgversions.cli")

DEFAULT_PATTERN = "packages/*/config.toml"
DEFAULT_POLL_INTERVAL = 1.0


class CLIError(RuntimeError):
    pass


def _make_aggregator(args: argparse.Namespace) -> PackageVersionAggregator:
    root = Path(args.root or os.environ.get("PKGVERSIONS_ROOT") or ".")
    if not root.is_dir():
        raise CLIError(f"Root directory does not exist: {root}")
    pattern = args.pattern or os.environ.get("PKGVERSIONS_PATTERN") or DEFAULT_PATTERN
    return PackageVersionAggregator(LocalFileSource(root), pattern)


def _poll_interval(args: argparse.Namespace) -> float:
    raw = args.poll_interval or os.environ.get("PKGVERSIONS_POLL_INTERVAL") or DEFAULT_POLL_INTERVAL
    try:
        interval = float(raw)
    except ValueError as e:
        raise CLIError(f"Poll interval must be a number, got {raw!r}") from e
    if interval <= 0:
        raise CLIError(f"Poll interval must be positive, got {interval}")
    return interval


def _check_output_args(args: argparse.Namespace, *, output_required: bool) -> None:
    if args.template and not args.output:
        raise CLIError("--output is required when --template is set")
    if output_required and not args.output:
        raise CLIError("--output is required for this command")


def _publish(versions: Mapping[str, str], *, template: str | None, output: str | None) -> None:
    if template:
        path = render_versions(template_path=template, destination_path=output, versions=versions)
    elif output:
        path = write_versions_json(output, versions)
    else:
        sys.stdout.write(json.dumps(dict(versions), indent=2, sort_keys=True) + "\n")
        return
    logger.info("output_written", path=str(path), packages=len(versions))


def resolve_cmd(args: argparse.Namespace) -> int:
    _check_output_args(args, output_required=False)
    aggregator = _make_aggregator(args)
    versions = asyncio.run(aggregator.resolve())
    _publish(versions, template=args.template, output=args.output)
    return 0


def watch_cmd(args: argparse.Namespace) -> int:
    _check_output_args(args, output_required=True)
    aggregator = _make_aggregator(args)
    interval = _poll_interval(args)

    def on_publish(versions: Mapping[str, str]) -> None:
        try:
            _publish(versions, template=args.template, output=args.output)
        except RenderError as e:
            # Keep watching; the next change may fix the template.
            logger.error("render_failed", error=str(e))

    aggregator.subscribe(on_publish)
    logger.info("watch_started", pattern=aggregator.pattern, interval=interval)
    try:
        asyncio.run(aggregator.watch(interval=interval))
    except KeyboardInterrupt:
        logger.info("watch_stopped")
    return 0


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--root", default=None, help="Tree root the pattern is relative to (or env PKGVERSIONS_ROOT)")
    p.add_argument(
        "--pattern",
        default=None,
        help=f"Glob for package config files (or env PKGVERSIONS_PATTERN; default: {DEFAULT_PATTERN})",
    )
    p.add_argument("--template", default=None, help="Jinja2 template to render with the version map")
    p.add_argument("--output", default=None, help="Output file (JSON unless --template is set)")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pkgversions", description="Aggregate package versions for a documentation build")
    sub = p.add_subparsers(dest="command", required=True)

    r = sub.add_parser("resolve", help="Resolve the version map once and print or write it")
    _add_common_args(r)
    r.set_defaults(func=resolve_cmd)

    w = sub.add_parser("watch", help="Republish the version map whenever a config file changes")
    _add_common_args(w)
    w.add_argument(
        "--poll-interval",
        default=None,
        help=f"Seconds between change polls (or env PKGVERSIONS_POLL_INTERVAL; default: {DEFAULT_POLL_INTERVAL})",
    )
    w.set_defaults(func=watch_cmd)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except (AggregationError, RenderError, CLIError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
