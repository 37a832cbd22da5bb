"""CLI entrypoints for compgraph commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable, Optional, TextIO

from .config import load_config
from .errors import ConfigError
from .events import (
    AnalysisEvent,
    CompleteEvent,
    ComponentEvent,
    ErrorEvent,
    ProgressEvent,
    StatusEvent,
)
from .logging import configure_logging
from .orchestrator import AnalysisRequest, Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compgraph",
        description="Map the components of a JavaScript/TypeScript repository into a dependency graph.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .compgraph.yml file or the directory containing one.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a GitHub repository and print the discovered entities.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    analyze_parser.add_argument("repo_url", help="GitHub URL or owner/repo shorthand.")
    analyze_parser.add_argument("--branch", default="main", help="Branch to analyze.")
    analyze_parser.add_argument(
        "--all",
        dest="include_all_files",
        action="store_true",
        help="Consider every file in the tree, not only JavaScript/TypeScript sources.",
    )
    analyze_parser.add_argument(
        "--archive",
        action="store_true",
        help="Download the branch tarball instead of fetching files one by one.",
    )
    analyze_parser.add_argument(
        "--no-cache",
        dest="use_cache",
        action="store_false",
        help="Ignore cached results (the fresh result is still cached).",
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the final result as JSON instead of a table.",
    )

    local_parser = subparsers.add_parser(
        "local",
        help="Analyze a repository checkout on disk.",
    )
    _add_verbose_option(local_parser, suppress_default=True)
    local_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    local_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Write the JSON result to this file instead of stdout.",
    )

    cache_parser = subparsers.add_parser("cache", help="Inspect or clear the result cache.")
    _add_verbose_option(cache_parser, suppress_default=True)
    cache_parser.add_argument("action", choices=("stats", "clear"))

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for compgraph commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
        return

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    orchestrator = Orchestrator(config)

    if args.command == "analyze":
        request = AnalysisRequest(
            repo_url=args.repo_url,
            branch=args.branch,
            include_all_files=args.include_all_files,
            use_cache=args.use_cache,
            mode="archive" if args.archive else None,
        )
        result = _consume(orchestrator.analyze(request), quiet=args.json)
        if isinstance(result, ErrorEvent):
            parser.exit(1, f"compgraph analyze failed: {result.message}\n")
        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            _print_summary(result, sys.stdout)
    elif args.command == "local":
        result = _consume(
            orchestrator.analyze_local(args.path), quiet=args.output is None
        )
        if isinstance(result, ErrorEvent):
            parser.exit(1, f"compgraph local failed: {result.message}\n")
        document = json.dumps(result.to_dict(), indent=2)
        if args.output is None:
            print(document)
        else:
            args.output.write_text(document + "\n", encoding="utf-8")
            print(f"Wrote {result.analyzed_files} entities to {args.output}")
    elif args.command == "cache":
        if orchestrator.cache is None:
            parser.exit(1, "Caching is disabled in the configuration\n")
        if args.action == "stats":
            stats = orchestrator.cache.stats()
            print(f"Records: {stats.count}")
            print(f"Total size: {stats.total_bytes / (1024 * 1024):.2f} MB")
            if stats.oldest is not None and stats.newest is not None:
                print(f"Oldest: {stats.oldest.isoformat()}")
                print(f"Newest: {stats.newest.isoformat()}")
        else:
            removed = orchestrator.cache.clear()
            print(f"Removed {removed} cached analyses")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _consume(events: Iterable[AnalysisEvent], *, quiet: bool) -> CompleteEvent | ErrorEvent:
    """Drain ``events``, echoing progress to stderr, and return the terminal event."""
    terminal: Optional[CompleteEvent | ErrorEvent] = None
    for event in events:
        if isinstance(event, (CompleteEvent, ErrorEvent)):
            terminal = event
        elif quiet:
            continue
        elif isinstance(event, StatusEvent):
            print(event.message, file=sys.stderr)
        elif isinstance(event, ProgressEvent):
            print(f"[{event.current}/{event.total}] {event.path}", file=sys.stderr)
        elif isinstance(event, ComponentEvent):
            print(f"  found {event.entity.name} ({event.entity.role.value})", file=sys.stderr)
    if terminal is None:  # pragma: no cover - orchestrator always terminates
        return ErrorEvent(message="analysis ended without a result")
    return terminal


def _print_summary(result: CompleteEvent, stream: TextIO) -> None:
    source = " (from cache)" if result.from_cache else ""
    stream.write(
        f"Analyzed {result.analyzed_files} entities from {result.total_files} files{source}\n"
    )
    if not result.entities:
        return
    width = max(len(entity.name) for entity in result.entities)
    for entity in sorted(result.entities, key=lambda item: (item.role.value, item.name)):
        stream.write(f"{entity.name:<{width}}  {entity.role.value:<14}  {entity.file}\n")
        if entity.uses:
            stream.write(f"{'':<{width}}  uses: {', '.join(entity.uses)}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
