"""MCP server for sitecoord — exposes coordination findings to AI assistants."""

from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from sitecoord.analysis import (
    analyze_project as run_analysis,
    detect_schedule_conflicts,
    detect_trade_overlaps,
    infer_missing_dependencies,
    sort_chronologically,
)
from sitecoord.config import AnalysisConfig, load_config
from sitecoord.graph import build_dependents, impacted_by
from sitecoord.models import ProjectSnapshot, TaskStatus
from sitecoord.persistence import Store, project_status
from sitecoord.report import report_for_project

mcp = FastMCP(
    "sitecoord",
    instructions="""\
sitecoord checks the schedule of construction projects. Each project has tasks; \
a task belongs to a trade (plumbing, electrical...), has planned start/end dates \
and may depend on other tasks of the same project.

Three kinds of findings:
- **Trade overlaps** (confirmed): two tasks of different trades are planned over \
the same days. Boundaries are inclusive: a task ending on the 5th and another \
starting on the 5th overlap for 1 day.
- **Schedule conflicts** (confirmed): a task is planned to start before one of \
its declared dependencies is planned to end. conflict_days is how many days too early.
- **Missing dependencies** (candidates only): a task with no declared \
dependencies starts shortly after another task ends. These are suggestions for \
review, never facts. Do not present them as errors.

Use get_coordination_report for an overview of a project, analyze_project for \
all findings at once, and get_impacted_tasks to answer "what slips if this task slips?".\
""",
)


def _get_store() -> Store:
    return Store()


def _config(store: Store) -> AnalysisConfig:
    stored, _, _ = store.load()
    return load_config(stored)


def _task_count(project: object) -> int:
    tasks = project.get("tasks") if isinstance(project, dict) else None
    return len(tasks) if isinstance(tasks, list) else 0


def _snapshot(store: Store, project_id: str) -> ProjectSnapshot:
    snapshot = store.load_project(project_id)
    if snapshot is None:
        raise ValueError(f"Project {project_id} not found.")
    return snapshot


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_projects() -> str:
    """List all projects with their status and task count."""
    store = _get_store()
    _, _, projects = store.load()
    if not projects:
        return "No projects found."
    result = [
        {
            "id": pid,
            "name": p.get("name", pid) if isinstance(p, dict) else pid,
            "status": project_status(p),
            "tasks": _task_count(p),
        }
        for pid, p in projects.items()
    ]
    return json.dumps(result, indent=2)


@mcp.tool()
def analyze_project(project_id: str) -> str:
    """Run all detectors on a project: overlaps, conflicts and missing-dependency candidates.

    Args:
        project_id: Project ID (e.g. "P-1")
    """
    store = _get_store()
    snapshot = _snapshot(store, project_id)
    result = run_analysis(snapshot, _config(store))
    return json.dumps(result.to_dict(), indent=2)


@mcp.tool()
def get_trade_overlaps(project_id: str) -> str:
    """Get pairs of tasks from different trades whose planned windows overlap.

    Args:
        project_id: Project ID (e.g. "P-1")
    """
    snapshot = _snapshot(_get_store(), project_id)
    found = detect_trade_overlaps(snapshot.tasks, snapshot.trades)
    return json.dumps([o.to_dict() for o in found], indent=2)


@mcp.tool()
def get_schedule_conflicts(project_id: str) -> str:
    """Get tasks planned to start before a declared dependency is planned to end.

    Args:
        project_id: Project ID (e.g. "P-1")
    """
    snapshot = _snapshot(_get_store(), project_id)
    found = detect_schedule_conflicts(snapshot.tasks)
    return json.dumps([c.to_dict() for c in found], indent=2)


@mcp.tool()
def get_missing_dependencies(project_id: str, lookback_days: int | None = None) -> str:
    """Get candidate predecessors for tasks that declare no dependencies.

    These are heuristic suggestions for review, not confirmed problems.

    Args:
        project_id: Project ID (e.g. "P-1")
        lookback_days: Window in days (defaults to the configured value, usually 5)
    """
    store = _get_store()
    snapshot = _snapshot(store, project_id)
    window = _config(store).lookback_days if lookback_days is None else lookback_days
    found = infer_missing_dependencies(sort_chronologically(snapshot.tasks), window)
    return json.dumps([m.to_dict() for m in found], indent=2)


@mcp.tool()
def get_coordination_report(project_id: str, include_findings: bool = False) -> str:
    """Get tasks grouped by trade with completed/in-progress/planned/delayed counts.

    Args:
        project_id: Project ID (e.g. "P-1")
        include_findings: Also run the detectors and attach their findings
    """
    store = _get_store()
    config = _config(store)
    snapshot = store.load_project(project_id)
    analysis = run_analysis(snapshot, config) if (snapshot and include_findings) else None
    rep = report_for_project(
        snapshot,
        analysis=analysis,
        date_format=config.date_format,
        unassigned_label=config.unassigned_label,
    )
    if rep is None:
        return f"Error: project {project_id} not found."
    return json.dumps(rep.to_dict(), indent=2, ensure_ascii=False)


@mcp.tool()
def get_impacted_tasks(project_id: str, task_id: str) -> str:
    """Get every task that directly or transitively depends on a task.

    Args:
        project_id: Project ID (e.g. "P-1")
        task_id: Task ID (e.g. "T-3")
    """
    snapshot = _snapshot(_get_store(), project_id)
    dependents = build_dependents(snapshot.tasks)
    if task_id not in dependents:
        return f"Error: task {task_id} not found."
    return json.dumps(
        {
            "task_id": task_id,
            "direct": dependents[task_id],
            "all": impacted_by(dependents, task_id),
        },
        indent=2,
    )


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def set_task_status(project_id: str, task_id: str, status: str) -> str:
    """Set a task's status.

    Args:
        project_id: Project ID (e.g. "P-1")
        task_id: Task ID (e.g. "T-3")
        status: One of "planned", "in_progress", "completed", "delayed"
    """
    try:
        new_status = TaskStatus(status)
    except ValueError:
        valid = ", ".join(s.value for s in TaskStatus)
        return f"Error: invalid status '{status}'. Valid statuses: {valid}"

    store = _get_store()
    config, trades, projects = store.load()
    project = projects.get(project_id)
    if not isinstance(project, dict):
        return f"Error: project {project_id} not found."

    tasks = project.get("tasks")
    for record in tasks if isinstance(tasks, list) else []:
        if isinstance(record, dict) and record.get("id") == task_id:
            old = record.get("status", TaskStatus.PLANNED.value)
            record["status"] = new_status.value
            store.save(config, trades, projects)
            return f"Set {task_id} from {old} to {new_status.value}."
    return f"Error: task {task_id} not found."


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
