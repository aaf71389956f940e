"""Command-line entry point: build the registry and exercise every handler.

Usage:
    python -m src.main
    python -m src.main ./handlers --raw-body '{"email": "someone@example.com"}'
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping
from typing import Any

import structlog

from src.config import get_settings
from src.infrastructure.observability import init_observability, shutdown_observability
from src.modules.handlers import RegisteredModule, build_registry

logger = structlog.get_logger()


async def run_all(
    registry: Mapping[str, RegisteredModule], raw_body: Any
) -> dict[str, Any]:
    """Call every usable invoker once with a fresh context.

    Modules without an invoker are logged and skipped.

    Args:
        registry: Registry built by `build_registry`.
        raw_body: Value placed under `rawBody` in each context.

    Returns:
        Invocation results keyed by module name.
    """
    results: dict[str, Any] = {}
    for name, module in registry.items():
        if module.invoker is None:
            logger.info("invoker_skipped", module=name, reason="no usable handler")
            continue

        logger.info("invoker_executing", module=name)
        results[name] = await module.invoker({"rawBody": raw_body})
        logger.info("invoker_executed", module=name)
    return results


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Load handler modules from a directory and run each one once",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use the directory and sample body from settings
  python -m src.main

  # Scan another directory with a custom body
  python -m src.main ./other_handlers --raw-body '{"email": "a@b.com"}'
        """,
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default=settings.handlers_path,
        help=f"Directory to scan (default: {settings.handlers_path})",
    )
    parser.add_argument(
        "--raw-body",
        default=None,
        help="JSON value passed as rawBody to every handler",
    )
    parser.add_argument(
        "--extension",
        default=settings.handler_extension,
        help=f"Handler module extension (default: {settings.handler_extension})",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Build the registry, show processed sources and run every handler.

    Returns:
        Exit code (0 for success, 2 for an invalid --raw-body).
    """
    settings = get_settings()
    args = _parse_args(argv)

    if args.raw_body is None:
        raw_body: Any = settings.sample_raw_body
    else:
        try:
            raw_body = json.loads(args.raw_body)
        except json.JSONDecodeError as e:
            print(f"✗ Error: --raw-body is not valid JSON: {e}", file=sys.stderr)
            return 2

    init_observability(
        settings.app_name,
        settings.app_version,
        log_level=settings.log_level,
        log_json=settings.log_json,
        tracing_enabled=settings.tracing_enabled,
        otlp_endpoint=settings.otlp_endpoint,
        console_export=settings.trace_console_export,
        sample_rate=settings.trace_sample_rate,
    )

    try:
        registry = build_registry(args.directory, extension=args.extension)
        for name, source in registry.contents().items():
            logger.info("module_source", module=name, source=source)

        results = asyncio.run(run_all(registry, raw_body))
    finally:
        shutdown_observability()

    print(json.dumps(results, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
