"""Task, trade and finding definitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar


class TaskStatus(enum.StrEnum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"


class FindingKind(enum.StrEnum):
    TRADE_OVERLAP = "trade_overlap"
    SCHEDULE_CONFLICT = "schedule_conflict"
    MISSING_DEPENDENCY = "missing_dependency"


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


@dataclass(frozen=True)
class Trade:
    """A category of construction work (plumbing, roofing...)."""

    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass
class Task:
    """A unit of work within a project."""

    id: str
    name: str = ""
    trade_id: str | None = None
    planned_start: date | None = None
    planned_end: date | None = None
    actual_start: date | None = None
    actual_end: date | None = None
    status: TaskStatus = TaskStatus.PLANNED
    depends_on: list[str] = field(default_factory=list)
    description: str | None = None

    def __post_init__(self) -> None:
        # Raises ValueError for a status outside the closed set.
        self.status = TaskStatus(self.status)

    @property
    def has_planned_range(self) -> bool:
        return self.planned_start is not None and self.planned_end is not None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "trade_id": self.trade_id,
            "planned_start": _iso(self.planned_start),
            "planned_end": _iso(self.planned_end),
            "actual_start": _iso(self.actual_start),
            "actual_end": _iso(self.actual_end),
            "status": self.status.value,
            "depends_on": list(self.depends_on),
        }
        if self.description is not None:
            d["description"] = self.description
        return d


@dataclass(frozen=True)
class SkippedRecord:
    """A record excluded at ingestion, kept so the exclusion stays visible."""

    index: int
    record_id: str | None
    reason: str

    def to_dict(self) -> dict:
        return {"index": self.index, "record_id": self.record_id, "reason": self.reason}


@dataclass
class TaskSet:
    """Ingested tasks plus everything that had to be left out."""

    tasks: list[Task] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass
class ProjectSnapshot:
    """Everything one analysis run needs for a single project."""

    id: str
    name: str
    status: str = "active"
    tasks: list[Task] = field(default_factory=list)
    trades: dict[str, Trade] = field(default_factory=dict)
    skipped: list[SkippedRecord] = field(default_factory=list)

    def trade_name(self, task: Task) -> str | None:
        if task.trade_id is None or task.trade_id not in self.trades:
            return None
        return self.trades[task.trade_id].name


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------
# Overlaps and conflicts are confirmed facts about the schedule. Missing
# dependency candidates are only suggestions and are kept as a separate type.


@dataclass(frozen=True)
class OverlapFinding:
    """Two tasks of different trades scheduled over intersecting windows."""

    kind: ClassVar[FindingKind] = FindingKind.TRADE_OVERLAP
    confirmed: ClassVar[bool] = True

    task1_id: str
    task2_id: str
    trade1_name: str
    trade2_name: str
    overlap_start: date
    overlap_end: date
    overlap_days: int
    task1_name: str = ""
    task2_name: str = ""

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "task1_id": self.task1_id,
            "task2_id": self.task2_id,
            "trade1_name": self.trade1_name,
            "trade2_name": self.trade2_name,
            "overlap_start": self.overlap_start.isoformat(),
            "overlap_end": self.overlap_end.isoformat(),
            "overlap_days": self.overlap_days,
        }


@dataclass(frozen=True)
class DependencyConflict:
    """A task planned to start before one of its dependencies ends."""

    kind: ClassVar[FindingKind] = FindingKind.SCHEDULE_CONFLICT
    confirmed: ClassVar[bool] = True

    task_id: str
    dependency_id: str
    conflict_days: int
    task_start: date | None = None
    dependency_end: date | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "task_id": self.task_id,
            "dependency_id": self.dependency_id,
            "conflict_days": self.conflict_days,
        }


@dataclass(frozen=True)
class PredecessorCandidate:
    task_id: str
    gap_days: int


@dataclass(frozen=True)
class MissingDependencyCandidate:
    """Heuristic suggestion: the task may need one of these predecessors.

    Never applied automatically; meant for human or downstream review.
    """

    kind: ClassVar[FindingKind] = FindingKind.MISSING_DEPENDENCY
    confirmed: ClassVar[bool] = False

    task_id: str
    candidates: tuple[PredecessorCandidate, ...]

    @property
    def candidate_predecessor_ids(self) -> list[str]:
        return [c.task_id for c in self.candidates]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "task_id": self.task_id,
            "candidate_predecessor_ids": self.candidate_predecessor_ids,
            "gap_days": {c.task_id: c.gap_days for c in self.candidates},
        }


Finding = OverlapFinding | DependencyConflict | MissingDependencyCandidate
