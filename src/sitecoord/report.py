"""Per-trade coordination report for a project."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

from sitecoord.analysis import AnalysisResult, sort_chronologically
from sitecoord.config import DEFAULT_DATE_FORMAT, UNASSIGNED_TRADE
from sitecoord.logger import get_logger
from sitecoord.models import ProjectSnapshot, Task, TaskStatus, Trade

logger = get_logger()

NOT_SET = "Not set"
NO_ACTUAL = "-"


def _fmt(d: date | None, date_format: str, missing: str) -> str:
    return d.strftime(date_format) if d is not None else missing


@dataclass(frozen=True)
class TaskDisplay:
    id: str
    name: str
    description: str | None
    planned_start: str
    planned_end: str
    actual_start: str
    actual_end: str
    status: TaskStatus

    @classmethod
    def from_task(cls, task: Task, date_format: str = DEFAULT_DATE_FORMAT) -> TaskDisplay:
        return cls(
            id=task.id,
            name=task.name,
            description=task.description,
            planned_start=_fmt(task.planned_start, date_format, NOT_SET),
            planned_end=_fmt(task.planned_end, date_format, NOT_SET),
            actual_start=_fmt(task.actual_start, date_format, NO_ACTUAL),
            actual_end=_fmt(task.actual_end, date_format, NO_ACTUAL),
            status=task.status,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "planned_start": self.planned_start,
            "planned_end": self.planned_end,
            "actual_start": self.actual_start,
            "actual_end": self.actual_end,
            "status": self.status.value,
        }


@dataclass
class CoordinationReport:
    """Tasks grouped by trade name with status counts, plus optional findings."""

    project_name: str
    generated_date: str
    tasks_by_trade: dict[str, list[TaskDisplay]]
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    planned_tasks: int
    delayed_tasks: int
    analysis: AnalysisResult | None = field(default=None)

    def to_dict(self) -> dict:
        d = {
            "project_name": self.project_name,
            "generated_date": self.generated_date,
            "tasks_by_trade": {
                name: [t.to_dict() for t in entries] for name, entries in self.tasks_by_trade.items()
            },
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "in_progress_tasks": self.in_progress_tasks,
            "planned_tasks": self.planned_tasks,
            "delayed_tasks": self.delayed_tasks,
        }
        if self.analysis is not None:
            d.update(self.analysis.to_dict())
        return d


def build_coordination_report(
    project_name: str | None,
    tasks: Sequence[Task] | None,
    trades: Mapping[str, Trade] | None = None,
    analysis: AnalysisResult | None = None,
    generated: date | None = None,
    date_format: str = DEFAULT_DATE_FORMAT,
    unassigned_label: str = UNASSIGNED_TRADE,
) -> CoordinationReport | None:
    """Assemble the report, or return None when the project or its tasks are unknown.

    Grouping is by trade display name, so two trades sharing a name are merged.
    Tasks without a trade, or whose trade cannot be resolved, go under
    *unassigned_label*.
    """
    if project_name is None or tasks is None:
        logger.error("Cannot build a coordination report: project or tasks not found")
        return None

    trades = trades or {}
    generated = generated or date.today()
    logger.info("Generating coordination report for project %s", project_name)

    tasks_by_trade: dict[str, list[TaskDisplay]] = {}
    for task in sort_chronologically(tasks):
        trade = trades.get(task.trade_id) if task.trade_id is not None else None
        label = trade.name if trade is not None else unassigned_label
        tasks_by_trade.setdefault(label, []).append(TaskDisplay.from_task(task, date_format))

    counts = {status: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status] += 1

    return CoordinationReport(
        project_name=project_name,
        generated_date=generated.strftime(date_format),
        tasks_by_trade=tasks_by_trade,
        total_tasks=len(tasks),
        completed_tasks=counts[TaskStatus.COMPLETED],
        in_progress_tasks=counts[TaskStatus.IN_PROGRESS],
        planned_tasks=counts[TaskStatus.PLANNED],
        delayed_tasks=counts[TaskStatus.DELAYED],
        analysis=analysis,
    )


def report_for_project(
    snapshot: ProjectSnapshot | None,
    analysis: AnalysisResult | None = None,
    generated: date | None = None,
    date_format: str = DEFAULT_DATE_FORMAT,
    unassigned_label: str = UNASSIGNED_TRADE,
) -> CoordinationReport | None:
    if snapshot is None:
        logger.error("Cannot build a coordination report: project not found")
        return None
    return build_coordination_report(
        snapshot.name,
        snapshot.tasks,
        snapshot.trades,
        analysis=analysis,
        generated=generated,
        date_format=date_format,
        unassigned_label=unassigned_label,
    )
