"""Entry point for running check-search.

This module provides the command line entry point. It handles:
- Configuration loading
- Logging setup with secret sanitization
- Adapter instantiation
- Running the selected checks and rendering their results
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog
import yaml

from check_search._version import __version__
from check_search.core.rules import RuleKind

log = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from check_search.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    fmt = LogFormat(log_format.lower())

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="check-search",
        description="check-search - Search-driven code-health checks across repositories",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    parser.add_argument(
        "-o",
        "--output",
        choices=["text", "json"],
        default="text",
        help="Result output format (default: text)",
    )

    parser.add_argument(
        "--check",
        action="append",
        dest="checks",
        metavar="ID",
        help="Run only this check (repeatable); one of: "
        + ", ".join(kind.value for kind in RuleKind),
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate config and print the search queries without running them",
    )

    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and exit",
    )

    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print metrics in Prometheus text format after the run",
    )

    return parser.parse_args(argv)


async def run_checks(
    config_path: Path,
    check_ids: list[str] | None = None,
    output: str = "text",
    dry_run: bool = False,
    health_check: bool = False,
    show_metrics: bool = False,
    debug: bool = False,
) -> int:
    """Run the selected checks.

    Args:
        config_path: Path to configuration file
        check_ids: Checks to run; all enabled checks when None
        output: Result format, "text" or "json"
        dry_run: If True, only validate config and print queries
        health_check: If True, run health check and exit
        show_metrics: If True, print metrics after the run
        debug: Keep debug logging regardless of the configured level

    Returns:
        Exit code: 0 clean, 1 failures or ERROR diagnostics, 2 configuration errors
    """
    from check_search.adapters.host.console import ConsolePublisher
    from check_search.adapters.search.sourcegraph import SourcegraphSearch
    from check_search.config.loader import load_config
    from check_search.core.check import CheckState
    from check_search.core.query_builder import QueryBuilder
    from check_search.core.registry import create_registry
    from check_search.utils.async_helpers import InvalidCriteria
    from check_search.utils.logging import configure_logging
    from check_search.utils.security import mask_config_value

    log.info("starting_check_search", version=__version__, config_path=str(config_path))

    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return EXIT_CONFIG
    except (ValueError, yaml.YAMLError) as e:
        log.error("configuration_invalid", error=str(e))
        return EXIT_CONFIG

    configure_logging(
        level="DEBUG" if debug else config.logging.level,
        log_format=config.logging.format,
        file_path=config.logging.file.path if config.logging.file.enabled else None,
        file_enabled=config.logging.file.enabled,
    )

    known = {kind.value for kind in RuleKind}
    unknown = sorted(set(check_ids or ()) - known)
    if unknown:
        log.error("unknown_checks", checks=unknown, known=sorted(known))
        return EXIT_CONFIG

    if config.search.access_token:
        log.info(
            "search_configured",
            url=config.search.url,
            access_token=mask_config_value("access_token", config.search.access_token),
        )

    async with SourcegraphSearch(config.search, config.retry) as search:
        if health_check:
            from check_search.utils.health import HealthChecker

            report = await HealthChecker(config, search).run_all_checks()
            sys.stdout.write(json.dumps(report.to_dict(), indent=2) + "\n")
            return EXIT_OK if report.healthy else EXIT_FAILED

        publisher = ConsolePublisher()
        with create_registry(config, search, publisher) as registry:
            selected = check_ids or [check.id for check in registry.checks()]

            if dry_run:
                builder = QueryBuilder()
                status = EXIT_OK
                for check_id in selected:
                    check = registry.get(check_id)
                    try:
                        query = builder.build(check.criteria)
                    except InvalidCriteria as e:
                        log.error("dry_run_invalid_criteria", check_id=check_id, error=str(e))
                        status = EXIT_CONFIG
                        continue
                    enabled = "" if check.enabled else " (disabled)"
                    sys.stdout.write(f"{check_id}{enabled}: {query.text}\n")
                log.info("dry_run_mode_config_valid", valid=status == EXIT_OK)
                return status

            results = await registry.start_all(selected)
            sys.stdout.write(publisher.render(output) + "\n")
            has_errors = publisher.has_errors()

            failed = [
                check_id
                for check_id, result in results.items()
                if isinstance(result, BaseException) or result is not CheckState.COMPLETED
            ]

    if show_metrics:
        from check_search.utils.metrics import get_metrics

        sys.stdout.write(get_metrics().to_prometheus_format() + "\n")

    if failed:
        log.warning("checks_not_completed", checks=failed)
        return EXIT_FAILED
    if has_errors:
        return EXIT_FAILED
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(
        debug=args.debug,
        log_format=args.format,
    )

    try:
        return asyncio.run(
            run_checks(
                args.config,
                check_ids=args.checks,
                output=args.output,
                dry_run=args.dry_run,
                health_check=args.health_check,
                show_metrics=args.metrics,
                debug=args.debug,
            )
        )
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
