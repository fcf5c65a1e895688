"""Pydantic schemas for raw task and trade records."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, field_validator, model_validator

from sitecoord.logger import get_logger
from sitecoord.models import Task, TaskStatus, Trade

logger = get_logger()


def _blank_date(v: Any) -> Any:
    if v is None or v == "":
        return None
    if isinstance(v, (date, str)):
        return v
    raise ValueError(f"expected a date, got {type(v).__name__}")


def _date_part(v: date | None) -> date | None:
    return v.date() if isinstance(v, datetime) else v


# Accepts a date, a datetime or an ISO string; keeps the calendar date only.
DateValue = Annotated[
    date | datetime | None,
    BeforeValidator(_blank_date),
    AfterValidator(_date_part),
]


def _record_id(v: Any) -> Any:
    """Ids may be stored as numbers; they are always handled as strings."""
    if isinstance(v, int) and not isinstance(v, bool):
        v = str(v)
    if isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("id must not be blank")
    return v


class TradeRecord(BaseModel):
    """Schema for one trade record."""

    id: str
    name: str

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _record_id(v)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v

    def to_trade(self) -> Trade:
        return Trade(id=self.id, name=self.name)


class TaskRecord(BaseModel):
    """Schema for one task record.

    Unknown keys are ignored. A missing status means ``planned``; a task
    listing itself in ``depends_on`` has that entry dropped with a warning.
    """

    id: str
    name: str = ""
    trade_id: str | None = None
    planned_start: DateValue = None
    planned_end: DateValue = None
    actual_start: DateValue = None
    actual_end: DateValue = None
    status: TaskStatus = TaskStatus.PLANNED
    depends_on: list[str] = Field(default_factory=list)
    description: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _record_id(v)

    @field_validator("trade_id", mode="before")
    @classmethod
    def coerce_trade_id(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return _record_id(v)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        return TaskStatus.PLANNED if v is None or v == "" else v

    @field_validator("depends_on", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("depends_on")
    @classmethod
    def dedupe_depends_on(cls, v: list[str]) -> list[str]:
        deps: list[str] = []
        for dep in v:
            dep = dep.strip()
            if dep and dep not in deps:
                deps.append(dep)
        return deps

    @model_validator(mode="after")
    def check_dependencies_and_dates(self) -> TaskRecord:
        if self.id in self.depends_on:
            logger.warning("Task %s lists itself as a dependency; ignoring it", self.id)
            self.depends_on = [d for d in self.depends_on if d != self.id]
        if self.planned_start and self.planned_end and self.planned_end < self.planned_start:
            raise ValueError(
                f"planned_end {self.planned_end} is before planned_start {self.planned_start}"
            )
        return self

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            name=self.name,
            trade_id=self.trade_id,
            planned_start=self.planned_start,
            planned_end=self.planned_end,
            actual_start=self.actual_start,
            actual_end=self.actual_end,
            status=self.status,
            depends_on=list(self.depends_on),
            description=self.description,
        )
