#!/usr/bin/env python3
"""Command-line interface for GroundSource.

Validate URLs for a query, search and validate in one step, or run the API
server.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from groundsource.app_utils.config_schema import GroundSourceConfig
from groundsource.app_utils.logging_config import configure_logging
from groundsource.core.citations import CitationStyle
from groundsource.core.errors import DomainError, ValidationError, user_message
from groundsource.services import ConfigService, GroundingResponse, GroundingService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="groundsource",
        description="Validate and cite web sources for a query",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate specific URLs for a query
  groundsource validate "excel pivot tables" https://example.com/pivot

  # Search DuckDuckGo and validate the hits, footnote citations
  groundsource search "python asyncio tutorial" --style footnote

  # Machine-readable output
  groundsource search "rust ownership" --json

  # Run the HTTP API
  groundsource serve --port 8000

Environment Variables:
  GROUNDSOURCE_HOME  Override the data directory (default: ~/.groundsource)
  LOG_LEVEL          Log level (default: INFO)
        """,
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate URLs for a query")
    validate.add_argument("query", help="Query the sources should support")
    validate.add_argument("urls", nargs="+", help="Candidate URLs")
    _add_pipeline_arguments(validate)

    search = subparsers.add_parser("search", help="Search the web and validate hits")
    search.add_argument("query", help="Search query")
    _add_pipeline_arguments(search)

    serve = subparsers.add_parser("serve", help="Run the HTTP API server")
    serve.add_argument("--host", default="0.0.0.0", help="Host (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )
    return parser


def _add_pipeline_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--style",
        choices=[s.value for s in CitationStyle],
        help="Citation style (default: from config, normally inline)",
    )
    parser.add_argument(
        "--max-results", type=int, help="Maximum number of sources to return"
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Minimum relevance between 0 and 1 (default: 0.6)",
    )
    parser.add_argument(
        "--concurrency", type=int, help="URLs validated concurrently per batch"
    )
    parser.add_argument("--domain", help="Knowledge domain, e.g. technology")
    parser.add_argument(
        "--config",
        help="Path to config.yaml (default: ~/.groundsource/config.yaml)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the full result as JSON"
    )


def load_config(args: argparse.Namespace) -> GroundSourceConfig:
    """Load configuration and apply command-line overrides."""
    config = ConfigService(args.config).load()
    if args.style:
        config.citations.style = CitationStyle(args.style)
    if args.max_results is not None:
        config.pipeline.max_results = args.max_results
        config.search.max_results = args.max_results
    if args.threshold is not None:
        config.pipeline.similarity_threshold = args.threshold
    if args.concurrency is not None:
        config.pipeline.max_concurrent_requests = args.concurrency
    if args.domain:
        config.pipeline.domain = args.domain
    return config


def print_response(response: GroundingResponse, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps(response.to_dict(), indent=2, default=str))
        return

    result = response.result
    rejected = [e for e in result.errors if e.url]
    print(f"\nQuery: {response.query}")
    print(
        f"Sources: {len(result.sources)} accepted, {len(rejected)} rejected, "
        f"score {result.score:.2f}\n"
    )
    if response.citations_text:
        print(response.citations_text)

    if rejected:
        print("Rejected:")
        for error in rejected:
            print(
                f"  ✗ {error.url} [{error.phase.value}] "
                f"{error.code.value}: {error.error}"
            )
    elif not result.sources:
        print("No verified sources found.")


async def _run(
    args: argparse.Namespace, config: GroundSourceConfig
) -> GroundingResponse:
    service = GroundingService.create_default(config)
    if args.command == "validate":
        return await service.validate(args.query, args.urls)
    return await service.ground(args.query, max_results=config.search.max_results)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the groundsource command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else None

    if args.command == "serve":
        from groundsource.api.main import serve

        configure_logging(level)
        serve(args.host, args.port, args.reload)
        return 0

    # stdout carries the result; logs go to stderr
    configure_logging(level, stream=sys.stderr)

    try:
        config = load_config(args)
        config.pipeline.validate()
        response = asyncio.run(_run(args, config))
    except (ValidationError, DomainError) as e:
        print(f"Error: {user_message(e)}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    print_response(response, as_json=args.json)
    return 0 if response.result.sources else 1


if __name__ == "__main__":
    sys.exit(main())
