"""Typer CLI for sitecoord."""

from __future__ import annotations

import json
import threading
from datetime import date
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from sitecoord.analysis import (
    AnalysisResult,
    analyze_project,
    detect_schedule_conflicts,
    detect_trade_overlaps,
    infer_missing_dependencies,
    sort_chronologically,
)
from sitecoord.config import AnalysisConfig, load_config
from sitecoord.exceptions import RecordError, SitecoordError
from sitecoord.graph import build_dependency_graph, build_dependents, impacted_by
from sitecoord.loader import parse_task
from sitecoord.logger import setup_logger
from sitecoord.models import ProjectSnapshot, Task, TaskStatus
from sitecoord.persistence import DEFAULT_DB_FILE, Store
from sitecoord.report import report_for_project
from sitecoord.runner import AnalysisRunner

app = typer.Typer(
    name="sitecoord",
    help="Trade coordination and schedule conflict detection for construction projects.",
    no_args_is_help=True,
)
console = Console()

_db_path: Path = Path(DEFAULT_DB_FILE)


def _get_store() -> Store:
    return Store(_db_path)


def _load(store: Store) -> tuple[AnalysisConfig | None, list[dict], dict[str, dict]]:
    try:
        return store.load()
    except SitecoordError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _get_config(store: Store) -> AnalysisConfig:
    stored, _, _ = _load(store)
    try:
        return load_config(stored)
    except SitecoordError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _project_record(projects: dict[str, dict], project_id: str) -> dict:
    project = projects.get(project_id)
    if not isinstance(project, dict):
        console.print(f"[red]Project {project_id} not found.[/red]")
        raise typer.Exit(1)
    return project


def _require_snapshot(store: Store, project_id: str) -> ProjectSnapshot:
    try:
        snapshot = store.load_project(project_id)
    except SitecoordError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if snapshot is None:
        console.print(f"[red]Project {project_id} not found.[/red]")
        raise typer.Exit(1)
    if snapshot.skipped:
        console.print(f"[yellow]{len(snapshot.skipped)} malformed record(s) skipped.[/yellow]")
    return snapshot


def _split_ids(values: list[str] | None) -> list[str]:
    """Expand repeated and comma-separated id options."""
    ids: list[str] = []
    for v in values or []:
        ids.extend(part.strip() for part in v.split(",") if part.strip())
    return ids


def _label(snapshot: ProjectSnapshot, task_id: str) -> str:
    for t in snapshot.tasks:
        if t.id == task_id:
            return f"{t.id} {t.name}".strip()
    return task_id


def _fmt_date(d: date | None, config: AnalysisConfig) -> str:
    return d.strftime(config.date_format) if d else "-"


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=warnings only (default), 1=findings, 2=all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the site snapshot file"),
    ] = Path(DEFAULT_DB_FILE),
) -> None:
    """Global options for sitecoord commands."""
    global _db_path
    setup_logger(verbose)
    _db_path = db


# ---------------------------------------------------------------------------
# Data entry
# ---------------------------------------------------------------------------


@app.command()
def init(
    lookback_days: Annotated[int, typer.Option(help="Window (days) for missing-dependency suggestions")] = 5,
    date_format: Annotated[str, typer.Option(help="strftime format used in reports")] = "%Y-%m-%d",
    interval_hours: Annotated[float, typer.Option(help="Hours between runs of 'watch'")] = 12.0,
) -> None:
    """Initialize (or reinitialize) analysis settings."""
    store = _get_store()
    _, trades, projects = _load(store)
    try:
        config = AnalysisConfig(
            lookback_days=lookback_days,
            date_format=date_format,
            check_interval_hours=interval_hours,
        )
    except SitecoordError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    store.save(config, trades, projects)
    console.print(f"[green]Settings saved to {store.db_path} (lookback {lookback_days} days).[/green]")


@app.command("add-trade")
def add_trade(name: str) -> None:
    """Add a trade (plumbing, roofing...)."""
    store = _get_store()
    config, trades, projects = _load(store)
    tid = store.generate_id((str(t.get("id", "")) for t in trades if isinstance(t, dict)), "TR")
    trades.append({"id": tid, "name": name})
    store.save(config, trades, projects)
    console.print(f"[green]Added trade '{name}' as {tid}[/green]")


@app.command("add-project")
def add_project(
    name: str,
    status: Annotated[str, typer.Option(help="Only 'active' projects are analyzed by 'watch'")] = "active",
) -> None:
    """Add a project."""
    store = _get_store()
    config, trades, projects = _load(store)
    pid = store.generate_id(projects, "P")
    projects[pid] = {"name": name, "status": status, "tasks": []}
    store.save(config, trades, projects)
    console.print(f"[green]Added project '{name}' as {pid}[/green]")


@app.command("add-task")
def add_task(
    project_id: str,
    name: str,
    trade: Annotated[Optional[str], typer.Option("--trade", help="Trade ID (e.g. TR-1)")] = None,
    start: Annotated[Optional[str], typer.Option(help="Planned start (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option(help="Planned end (YYYY-MM-DD)")] = None,
    depends: Annotated[Optional[list[str]], typer.Option("--depends", help="Task IDs this depends on")] = None,
    status: Annotated[TaskStatus, typer.Option(help="Task status")] = TaskStatus.PLANNED,
    description: Annotated[Optional[str], typer.Option(help="Free-text description")] = None,
) -> None:
    """Add a task to a project.

    Dependencies can be given individually (--depends T-1 --depends T-2)
    or comma-separated (--depends T-1,T-2).
    """
    store = _get_store()
    config, trades, projects = _load(store)
    records = _project_record(projects, project_id).setdefault("tasks", [])
    if not isinstance(records, list):
        console.print(f"[red]Project {project_id} has a malformed task list.[/red]")
        raise typer.Exit(1)
    existing = {r.get("id") for r in records if isinstance(r, dict)}
    deps = _split_ids(depends)
    for dep in deps:
        if dep not in existing:
            console.print(f"[red]Dependency {dep} not found.[/red]")
            raise typer.Exit(1)
    if trade is not None and trade not in {t.get("id") for t in trades if isinstance(t, dict)}:
        console.print(f"[red]Trade {trade} not found.[/red]")
        raise typer.Exit(1)

    try:
        task = parse_task({
            "id": store.generate_id((i for i in existing if isinstance(i, str)), "T"),
            "name": name,
            "trade_id": trade,
            "planned_start": start,
            "planned_end": end,
            "status": status,
            "depends_on": deps,
            "description": description,
        })
    except RecordError as e:
        console.print(f"[red]Invalid task: {e}[/red]")
        raise typer.Exit(1)

    records.append(task.to_dict())
    store.save(config, trades, projects)
    console.print(f"[green]Added '{name}' as {task.id}[/green]")


@app.command("set-status")
def set_status(
    project_id: str,
    task_id: str,
    status: Annotated[str, typer.Argument(help="planned, in_progress, completed, delayed")],
) -> None:
    """Override a task's status."""
    try:
        new_status = TaskStatus(status)
    except ValueError:
        valid = ", ".join(s.value for s in TaskStatus)
        console.print(f"[red]Invalid status '{status}'. Valid statuses: {valid}[/red]")
        raise typer.Exit(1)

    store = _get_store()
    config, trades, projects = _load(store)
    project = _project_record(projects, project_id)

    tasks = project.get("tasks")
    for record in tasks if isinstance(tasks, list) else []:
        if isinstance(record, dict) and record.get("id") == task_id:
            old = record.get("status", TaskStatus.PLANNED.value)
            record["status"] = new_status.value
            store.save(config, trades, projects)
            console.print(f"[green]Set {task_id} from {old} to {new_status.value}.[/green]")
            return

    console.print(f"[red]Task {task_id} not found.[/red]")
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@app.command("list")
def list_tasks(project_id: str) -> None:
    """List a project's tasks in chronological order."""
    store = _get_store()
    config = _get_config(store)
    snapshot = _require_snapshot(store, project_id)
    if not snapshot.tasks:
        console.print("No tasks found.")
        return

    table = Table(title=f"Tasks - {snapshot.name}")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Trade")
    table.add_column("Planned Start")
    table.add_column("Planned End")
    table.add_column("Status")
    table.add_column("Depends On")

    for t in sort_chronologically(snapshot.tasks):
        style = "bold red" if t.status == TaskStatus.DELAYED else None
        table.add_row(
            t.id,
            t.name,
            snapshot.trade_name(t) or "-",
            _fmt_date(t.planned_start, config),
            _fmt_date(t.planned_end, config),
            t.status.value,
            ", ".join(t.depends_on) or "-",
            style=style,
        )
    console.print(table)


@app.command()
def overlaps(project_id: str) -> None:
    """Show tasks of different trades whose planned windows overlap."""
    store = _get_store()
    config = _get_config(store)
    snapshot = _require_snapshot(store, project_id)
    found = detect_trade_overlaps(snapshot.tasks, snapshot.trades)
    if not found:
        console.print("[green]No overlap detected between trades.[/green]")
        return

    table = Table(title="Trade Overlaps")
    table.add_column("Trade 1")
    table.add_column("Task 1")
    table.add_column("Trade 2")
    table.add_column("Task 2")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Days")
    for o in found:
        table.add_row(
            o.trade1_name,
            _label(snapshot, o.task1_id),
            o.trade2_name,
            _label(snapshot, o.task2_id),
            _fmt_date(o.overlap_start, config),
            _fmt_date(o.overlap_end, config),
            str(o.overlap_days),
        )
    console.print(table)


@app.command()
def conflicts(project_id: str) -> None:
    """Show tasks planned to start before a dependency ends."""
    store = _get_store()
    config = _get_config(store)
    snapshot = _require_snapshot(store, project_id)
    found = detect_schedule_conflicts(snapshot.tasks)
    if not found:
        console.print("[green]No schedule conflict detected.[/green]")
        return

    table = Table(title="Schedule Conflicts")
    table.add_column("Task")
    table.add_column("Starts")
    table.add_column("Depends On")
    table.add_column("Ends")
    table.add_column("Days")
    for c in found:
        table.add_row(
            _label(snapshot, c.task_id),
            _fmt_date(c.task_start, config),
            _label(snapshot, c.dependency_id),
            _fmt_date(c.dependency_end, config),
            str(c.conflict_days),
            style="bold red",
        )
    console.print(table)


@app.command()
def suggest(
    project_id: str,
    lookback: Annotated[Optional[int], typer.Option("--lookback", min=0, help="Override the lookback window (days)")] = None,
) -> None:
    """Suggest dependencies that may be missing (heuristic, review before applying)."""
    store = _get_store()
    config = _get_config(store)
    snapshot = _require_snapshot(store, project_id)
    window = config.lookback_days if lookback is None else lookback
    found = infer_missing_dependencies(sort_chronologically(snapshot.tasks), window)
    if not found:
        console.print("[green]No missing dependency suggested.[/green]")
        return

    console.print(f"\n[bold]Possible missing dependencies[/bold] [dim](window: {window} days)[/dim]\n")
    for m in found:
        console.print(f"  {_label(snapshot, m.task_id)} could depend on:")
        for c in m.candidates:
            console.print(f"    - {_label(snapshot, c.task_id)}  [dim](ends {c.gap_days} day(s) before)[/dim]")
    console.print()


def _print_summary(snapshot: ProjectSnapshot, result: AnalysisResult) -> None:
    console.print(f"\n[bold underline]{snapshot.name}[/bold underline]\n")
    o_style = "red" if result.overlaps else "green"
    c_style = "red" if result.conflicts else "green"
    m_style = "yellow" if result.candidates else "green"
    console.print(f"  [{o_style}]{len(result.overlaps)} trade overlap(s)[/{o_style}]")
    console.print(f"  [{c_style}]{len(result.conflicts)} schedule conflict(s)[/{c_style}]")
    console.print(f"  [{m_style}]{len(result.candidates)} task(s) with possible missing dependencies[/{m_style}]")
    if result.skipped:
        console.print(f"  [yellow]{len(result.skipped)} record(s) skipped at load[/yellow]")
    console.print()


@app.command()
def analyze(
    project_id: str,
    as_json: Annotated[bool, typer.Option("--json", help="Print findings as JSON")] = False,
) -> None:
    """Run all three detectors on a project."""
    store = _get_store()
    config = _get_config(store)
    snapshot = _require_snapshot(store, project_id)
    result = analyze_project(snapshot, config)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return
    _print_summary(snapshot, result)


@app.command()
def impact(project_id: str, task_id: str) -> None:
    """Show every task that waits, directly or not, on TASK_ID."""
    store = _get_store()
    snapshot = _require_snapshot(store, project_id)
    dependents = build_dependents(snapshot.tasks)
    if task_id not in dependents:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)

    affected = impacted_by(dependents, task_id)
    if not affected:
        console.print(f"Nothing depends on {task_id}.")
        return
    console.print(f"\n[bold]If {_label(snapshot, task_id)} slips, these tasks are affected:[/bold]")
    for tid in affected:
        direct = " [dim](direct)[/dim]" if tid in dependents[task_id] else ""
        console.print(f"  {_label(snapshot, tid)}{direct}")
    console.print()


@app.command()
def report(
    project_id: str,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON")] = False,
    with_findings: Annotated[bool, typer.Option("--findings", help="Include detector findings")] = False,
) -> None:
    """Coordination report: tasks grouped by trade with status counts."""
    store = _get_store()
    config = _get_config(store)
    try:
        snapshot = store.load_project(project_id)
    except SitecoordError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    analysis = analyze_project(snapshot, config) if (snapshot and with_findings) else None
    rep = report_for_project(
        snapshot,
        analysis=analysis,
        date_format=config.date_format,
        unassigned_label=config.unassigned_label,
    )
    if rep is None:
        console.print(f"[red]Project {project_id} not found.[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(rep.to_dict(), indent=2, ensure_ascii=False))
        return

    console.print(f"\n[bold underline]Coordination report - {rep.project_name}[/bold underline]")
    console.print(f"[dim]Generated {rep.generated_date}[/dim]\n")
    console.print(
        f"  Tasks: {rep.total_tasks} total  [green]{rep.completed_tasks} completed[/green]  "
        f"[yellow]{rep.in_progress_tasks} in progress[/yellow]  {rep.planned_tasks} planned  "
        f"[red]{rep.delayed_tasks} delayed[/red]\n"
    )
    for trade_name, entries in rep.tasks_by_trade.items():
        table = Table(title=trade_name)
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Planned")
        table.add_column("Actual")
        table.add_column("Status")
        for e in entries:
            table.add_row(
                e.id,
                e.name,
                f"{e.planned_start} -> {e.planned_end}",
                f"{e.actual_start} -> {e.actual_end}",
                e.status.value,
            )
        console.print(table)
    if analysis is not None:
        _print_summary(snapshot, analysis)


@app.command()
def viz(
    project_id: str,
    output: Annotated[str, typer.Option("-o", "--output", help="Output file path")] = "coordination.md",
) -> None:
    """Generate a Mermaid flowchart of the dependency graph, conflicts in red."""
    store = _get_store()
    snapshot = _require_snapshot(store, project_id)
    if not snapshot.tasks:
        console.print("No tasks to visualize.")
        return

    G = build_dependency_graph(snapshot.tasks)
    conflicting = {(c.dependency_id, c.task_id) for c in detect_schedule_conflicts(snapshot.tasks)}
    overlapping = {tid for o in detect_trade_overlaps(snapshot.tasks, snapshot.trades) for tid in (o.task1_id, o.task2_id)}

    lines = ["```mermaid", "flowchart LR"]
    lines.append("    classDef done fill:#2d6a4f,stroke:#1b4332,color:#d8f3dc")
    lines.append("    classDef delayed fill:#e76f51,stroke:#f4a261,color:#fff")
    lines.append("    classDef overlap fill:#d4a373,stroke:#e76f51,color:#000,stroke-width:3px")
    lines.append("    classDef default fill:#457b9d,stroke:#1d3557,color:#f1faee")

    for tid, data in G.nodes(data=True):
        task: Task = data["task"]
        label = task.name.replace('"', "'")
        trade = (snapshot.trade_name(task) or "-").replace('"', "'")
        lines.append(f'    {tid}["{tid}: {label}<br/>{trade}"]')

    link_styles: list[str] = []
    for index, (dep, tid) in enumerate(G.edges()):
        lines.append(f"    {dep} --> {tid}")
        if (dep, tid) in conflicting:
            link_styles.append(f"    linkStyle {index} stroke:#d00,stroke-width:3px")
    lines.extend(link_styles)

    done_ids = [t.id for t in snapshot.tasks if t.status == TaskStatus.COMPLETED]
    delayed_ids = [t.id for t in snapshot.tasks if t.status == TaskStatus.DELAYED]
    overlap_only = [tid for tid in G.nodes if tid in overlapping and tid not in done_ids and tid not in delayed_ids]
    if done_ids:
        lines.append(f"    class {','.join(done_ids)} done")
    if delayed_ids:
        lines.append(f"    class {','.join(delayed_ids)} delayed")
    if overlap_only:
        lines.append(f"    class {','.join(overlap_only)} overlap")

    lines.append("```")
    Path(output).write_text("\n".join(lines) + "\n")
    console.print(f"[green]Wrote Mermaid diagram to {output}[/green]")


@app.command()
def watch(
    once: Annotated[bool, typer.Option("--once", help="Run a single pass and exit")] = False,
) -> None:
    """Re-analyze every active project periodically (every check_interval_hours)."""
    store = _get_store()
    config = _get_config(store)

    def on_result(snapshot: ProjectSnapshot, result: AnalysisResult) -> None:
        _print_summary(snapshot, result)

    runner = AnalysisRunner(store, config, on_result=on_result)
    if once:
        results = runner.run_once()
        if not results:
            console.print("No active project to analyze.")
        return

    stop = threading.Event()
    try:
        runner.run_forever(stop)
    except KeyboardInterrupt:
        stop.set()
        console.print("[dim]Stopped.[/dim]")


if __name__ == "__main__":
    app()
