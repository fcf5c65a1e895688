from datetime import date

import pytest

from sitecoord.logger import reset_logger
from sitecoord.models import Task, TaskStatus, Trade


@pytest.fixture(autouse=True)
def clean_logger():
    reset_logger()
    yield
    reset_logger()


def d(day: int, month: int = 1, year: int = 2025) -> date:
    return date(year, month, day)


def make_task(
    tid: str,
    trade: str | None = None,
    start: date | None = None,
    end: date | None = None,
    depends_on: list[str] | None = None,
    status: TaskStatus = TaskStatus.PLANNED,
    name: str | None = None,
) -> Task:
    return Task(
        id=tid,
        name=name or tid,
        trade_id=trade,
        planned_start=start,
        planned_end=end,
        status=status,
        depends_on=depends_on or [],
    )


@pytest.fixture
def trades() -> dict[str, Trade]:
    return {
        "TR-1": Trade("TR-1", "Terrassement"),
        "TR-2": Trade("TR-2", "Plomberie"),
        "TR-3": Trade("TR-3", "Électricité"),
    }


@pytest.fixture
def scenario_tasks() -> list[Task]:
    return [
        make_task("T-1", "TR-1", d(1), d(10), name="Fouilles"),
        make_task("T-2", "TR-2", d(8), d(20), name="Réseaux"),
        make_task("T-3", "TR-3", d(21), d(25), depends_on=["T-2"], name="Tableau"),
    ]
