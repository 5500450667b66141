"""Entry point: `warmupdicator` console script."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import settings
from .lifecycle import resolve_config_path
from .registry import WarmupRegistry, build_checks
from .service import WarmupService, WarmupSnapshot

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server; warmup fires once startup completes."""
    console.print(Panel("Starting Warmupdicator API Server", style="bold green"))
    uvicorn.run(
        "warmupdicator.api.server:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def _results_table(snapshot: WarmupSnapshot) -> Table:
    table = Table(title="Warmup results")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail")
    for cid, result in sorted(snapshot.per_check.items()):
        status = "[green]OK[/green]" if result.success else "[red]FAIL[/red]"
        table.add_row(cid, status, result.describe())
    return table


def run_once(config_file: str) -> int:
    """Run the configured endpoint checks in-process until they converge.

    Blocks until every check has succeeded, so it only ever returns 0; a check
    that never succeeds keeps the command running.
    """
    path = resolve_config_path(config_file)
    registry = WarmupRegistry(path=path)
    checks = build_checks(settings, registry)

    console.print(Panel(f"Config: {path}\nChecks: {len(checks)}", title="Warmupdicator", style="bold blue"))

    service = WarmupService(checks, max_workers=settings.warmup_max_workers)
    with console.status("[bold green]Warming up..."):
        service.run()

    snapshot = service.snapshot()
    console.print(_results_table(snapshot))
    console.print(
        f"\n[dim]Warmed up: {snapshot.warmed_up} | {snapshot.total_tries} tries "
        f"in {snapshot.current_round} rounds | {snapshot.total_elapsed_ms}ms[/dim]"
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Warmupdicator readiness warmup")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")

    run_parser = sub.add_parser("run", help="Run the configured checks once and report")
    run_parser.add_argument(
        "--config", default=settings.warmup_config_file, help="Path to warmupdicator.yaml",
    )

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "run":
        sys.exit(run_once(args.config))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
