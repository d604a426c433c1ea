"""Entry point for querywatch."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from querywatch.checks.models import QueryResult
from querywatch.checks.store import CheckStore
from querywatch.config import settings
from querywatch.services import build_detector, build_runner

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting querywatch API server", style="bold green"))
    uvicorn.run(
        "querywatch.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def load_result(path: Path) -> QueryResult:
    """Load a query result from a YAML (or JSON) file."""
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a mapping with columns/rows")
    return QueryResult.from_dict(raw, anomaly_detector=build_detector())


def run_evaluate(check_id: int, result_path: Path) -> int:
    """Evaluate one result file against a stored check."""
    store = CheckStore(settings.checks_db_path)
    try:
        if not store.get(check_id):
            console.print(f"[red]Check not found: {check_id}[/red]")
            return 1

        result = load_result(result_path)
        runner = build_runner(store)
        try:
            evaluated = runner.evaluate_stored(store, check_id, result)
        finally:
            runner.close()
    finally:
        store.close()

    if evaluated is None:
        console.print(f"[red]Check not found: {check_id}[/red]")
        return 1
    _, outcome = evaluated

    style = "green" if outcome.state == "passing" else "yellow"
    console.print(Panel(
        f"{outcome.previous_state} → [bold]{outcome.state}[/bold]\n"
        f"Message: {outcome.message or '-'}\n"
        f"Saved: {'yes' if outcome.changed else 'no change'}\n"
        f"Dispatched: {', '.join(name for name, _ in outcome.dispatched) or 'nothing'}",
        title=f"Check {check_id}",
        style=style,
    ))
    return 0


def run_list() -> int:
    store = CheckStore(settings.checks_db_path)
    try:
        checks = store.list_all()
    finally:
        store.close()

    table = Table(title="Checks")
    for col in ("ID", "Query", "Kind", "State", "Timeouts", "Last run"):
        table.add_column(col)
    for c in checks:
        table.add_row(
            str(c.id),
            str(c.query_id),
            c.kind.value if c.kind else ("missing_data" if c.invert else "bad_data"),
            c.state or "",
            "-" if c.timeouts is None else str(c.timeouts),
            c.last_run_at.isoformat(timespec="seconds") if c.last_run_at else "never",
        )
    console.print(table)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="querywatch: query checks and alerts")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")
    sub.add_parser("list", help="List stored checks")

    eval_parser = sub.add_parser("evaluate", help="Evaluate a result file against a check")
    eval_parser.add_argument("check_id", type=int, help="The check to evaluate")
    eval_parser.add_argument("result", type=Path, help="YAML/JSON file with columns, rows, error, timed_out")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "list":
        sys.exit(run_list())
    elif args.command == "evaluate":
        sys.exit(run_evaluate(args.check_id, args.result))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
