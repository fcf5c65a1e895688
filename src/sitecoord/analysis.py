"""Trade overlap, dependency conflict and missing-dependency detection.

Every function here is a pure computation over the task snapshot it is
given. Loading and persisting belong to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

from sitecoord.config import DEFAULT_LOOKBACK_DAYS, AnalysisConfig
from sitecoord.exceptions import ConfigError, InvalidInputError
from sitecoord.graph import build_dependents
from sitecoord.logger import get_logger
from sitecoord.models import (
    DependencyConflict,
    Finding,
    MissingDependencyCandidate,
    OverlapFinding,
    PredecessorCandidate,
    ProjectSnapshot,
    SkippedRecord,
    Task,
    Trade,
)

logger = get_logger()


def _require_tasks(tasks: Sequence[Task] | None) -> Sequence[Task]:
    if tasks is None:
        raise InvalidInputError("a task collection is required")
    return tasks


def overlap_window(
    start1: date, end1: date, start2: date, end2: date
) -> tuple[date, date] | None:
    """Intersection of two inclusive date ranges, or None if they are disjoint."""
    if start1 <= end2 and end1 >= start2:
        return max(start1, start2), min(end1, end2)
    return None


def inclusive_days(start: date, end: date) -> int:
    """Number of calendar days covered by [start, end]."""
    return (end - start).days + 1


# ---------------------------------------------------------------------------
# Trade overlaps
# ---------------------------------------------------------------------------


def group_by_trade(tasks: Sequence[Task]) -> dict[str, list[Task]]:
    """Tasks with a trade and a full planned range, keyed by trade id."""
    groups: dict[str, list[Task]] = {}
    for task in tasks:
        if task.trade_id is not None and task.has_planned_range:
            groups.setdefault(task.trade_id, []).append(task)
    return groups


def detect_trade_overlaps(
    tasks: Sequence[Task] | None,
    trades: Mapping[str, Trade] | None = None,
) -> list[OverlapFinding]:
    """Find task pairs from different trades whose planned ranges intersect."""
    tasks = _require_tasks(tasks)
    trades = trades or {}

    def trade_name(trade_id: str) -> str:
        trade = trades.get(trade_id)
        return trade.name if trade is not None else trade_id

    groups = group_by_trade(tasks)
    trade_ids = list(groups)
    overlaps: list[OverlapFinding] = []

    for i, trade1 in enumerate(trade_ids):
        for trade2 in trade_ids[i + 1:]:
            for task1 in groups[trade1]:
                for task2 in groups[trade2]:
                    logger.checks("Comparing %s (%s) with %s (%s)", task1.id, trade1, task2.id, trade2)
                    window = overlap_window(
                        task1.planned_start, task1.planned_end,
                        task2.planned_start, task2.planned_end,
                    )
                    if window is None:
                        continue
                    start, end = window
                    overlaps.append(
                        OverlapFinding(
                            task1_id=task1.id,
                            task2_id=task2.id,
                            trade1_name=trade_name(trade1),
                            trade2_name=trade_name(trade2),
                            overlap_start=start,
                            overlap_end=end,
                            overlap_days=inclusive_days(start, end),
                            task1_name=task1.name,
                            task2_name=task2.name,
                        )
                    )

    if overlaps:
        logger.info("%d overlap(s) detected between trades", len(overlaps))
        for o in overlaps:
            logger.findings(
                'Overlap: "%s" (task: %s) and "%s" (task: %s) overlap for %d day(s) from %s to %s',
                o.trade1_name, o.task1_name or o.task1_id,
                o.trade2_name, o.task2_name or o.task2_id,
                o.overlap_days, o.overlap_start, o.overlap_end,
            )
    else:
        logger.info("No overlap detected between trades")
    return overlaps


# ---------------------------------------------------------------------------
# Dependency conflicts
# ---------------------------------------------------------------------------


def detect_schedule_conflicts(
    tasks: Sequence[Task] | None,
    task_map: Mapping[str, Task] | None = None,
) -> list[DependencyConflict]:
    """Flag tasks planned to start before a declared dependency is planned to end."""
    tasks = _require_tasks(tasks)
    if task_map is None:
        task_map = {t.id: t for t in tasks}

    conflicts: list[DependencyConflict] = []
    for task in tasks:
        if not task.depends_on or task.planned_start is None:
            continue
        for dep_id in task.depends_on:
            dependency = task_map.get(dep_id)
            if dependency is None or dependency.planned_end is None:
                logger.checks("Skipping %s -> %s: dependency unresolved or unscheduled", task.id, dep_id)
                continue
            if task.planned_start < dependency.planned_end:
                conflicts.append(
                    DependencyConflict(
                        task_id=task.id,
                        dependency_id=dep_id,
                        conflict_days=(dependency.planned_end - task.planned_start).days,
                        task_start=task.planned_start,
                        dependency_end=dependency.planned_end,
                    )
                )

    if conflicts:
        logger.info("%d schedule conflict(s) detected", len(conflicts))
        for c in conflicts:
            logger.findings(
                "Schedule conflict: task %s starts on %s but depends on %s which ends on %s "
                "(%d day(s) of conflict)",
                c.task_id, c.task_start, c.dependency_id, c.dependency_end, c.conflict_days,
            )
    else:
        logger.info("No schedule conflict detected")
    return conflicts


# ---------------------------------------------------------------------------
# Missing dependencies (heuristic)
# ---------------------------------------------------------------------------


def sort_chronologically(tasks: Sequence[Task] | None) -> list[Task]:
    """Stable sort by planned start; unscheduled tasks go last in input order."""
    tasks = _require_tasks(tasks)
    return sorted(tasks, key=lambda t: (t.planned_start is None, t.planned_start or date.min))


def infer_missing_dependencies(
    sorted_tasks: Sequence[Task] | None,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
) -> list[MissingDependencyCandidate]:
    """Suggest predecessors for tasks that declare no dependencies.

    *sorted_tasks* must come from sort_chronologically(). A predecessor is
    suggested when it ends between 0 and *lookback_days* days before the
    task starts. Negative gaps are the schedule-conflict detector's concern.
    """
    sorted_tasks = _require_tasks(sorted_tasks)
    if lookback_days < 0:
        raise ConfigError(f"lookback_days must be >= 0, got {lookback_days}")

    results: list[MissingDependencyCandidate] = []
    for i, task in enumerate(sorted_tasks):
        if task.planned_start is None or task.depends_on:
            continue

        candidates: list[PredecessorCandidate] = []
        for prev in sorted_tasks[:i]:
            if prev.planned_end is None:
                continue
            gap = (task.planned_start - prev.planned_end).days
            if 0 <= gap <= lookback_days and prev.id not in task.depends_on:
                candidates.append(PredecessorCandidate(task_id=prev.id, gap_days=gap))

        if candidates:
            results.append(MissingDependencyCandidate(task_id=task.id, candidates=tuple(candidates)))

    if results:
        logger.info("%d task(s) with potential missing dependencies", len(results))
        for r in results:
            logger.findings(
                "Missing dependency: task %s could depend on %s",
                r.task_id, ", ".join(r.candidate_predecessor_ids),
            )
    else:
        logger.info("No missing dependency detected")
    return results


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------


@dataclass
class AnalysisResult:
    """Findings of one analysis run over a single project."""

    dependents: dict[str, list[str]] = field(default_factory=dict)
    overlaps: list[OverlapFinding] = field(default_factory=list)
    conflicts: list[DependencyConflict] = field(default_factory=list)
    candidates: list[MissingDependencyCandidate] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.overlaps or self.conflicts or self.candidates)

    def confirmed_findings(self) -> list[Finding]:
        return [*self.overlaps, *self.conflicts]

    def candidate_findings(self) -> list[Finding]:
        return list(self.candidates)

    def to_dict(self) -> dict:
        return {
            "overlaps": [o.to_dict() for o in self.overlaps],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "missing_dependencies": [m.to_dict() for m in self.candidates],
            "skipped_records": len(self.skipped),
        }


def analyze_tasks(
    tasks: Sequence[Task] | None,
    trades: Mapping[str, Trade] | None = None,
    config: AnalysisConfig | None = None,
) -> AnalysisResult:
    """Run the graph builder and the three detectors over one task set."""
    tasks = _require_tasks(tasks)
    config = config or AnalysisConfig()

    dependents = build_dependents(tasks)
    task_map = {t.id: t for t in tasks}
    return AnalysisResult(
        dependents=dependents,
        overlaps=detect_trade_overlaps(tasks, trades),
        conflicts=detect_schedule_conflicts(tasks, task_map),
        candidates=infer_missing_dependencies(sort_chronologically(tasks), config.lookback_days),
    )


def analyze_project(
    snapshot: ProjectSnapshot,
    config: AnalysisConfig | None = None,
) -> AnalysisResult:
    """Analyze a loaded project, carrying its ingestion skips into the result."""
    logger.info("Analyzing tasks for project %s (ID: %s)", snapshot.name, snapshot.id)
    if not snapshot.tasks:
        logger.info("No task found for project %s", snapshot.name)
        return AnalysisResult(skipped=list(snapshot.skipped))

    result = analyze_tasks(snapshot.tasks, snapshot.trades, config)
    result.skipped = list(snapshot.skipped)
    logger.info("Analysis finished for project %s", snapshot.name)
    return result
