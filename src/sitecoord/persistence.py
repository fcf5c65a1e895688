"""JSON snapshot persistence for trades, projects and tasks."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from sitecoord.config import AnalysisConfig
from sitecoord.exceptions import StoreError
from sitecoord.loader import load_task_set, load_trades
from sitecoord.models import ProjectSnapshot

DEFAULT_DB_FILE = "site_projects.json"
ACTIVE_STATUS = "active"


def project_status(project: object) -> str:
    """Status of a raw project record (active when absent or unreadable)."""
    if isinstance(project, dict):
        return str(project.get("status", ACTIVE_STATUS))
    return ACTIVE_STATUS


class Store:
    """Reads and writes the site snapshot (JSON file).

    Layout::

        {"config": {...},
         "trades": [{"id": "TR-1", "name": "Plumbing"}, ...],
         "projects": {"P-1": {"name": "...", "status": "active", "tasks": [...]}}}

    Task and trade records are kept raw; they are validated on the way out
    by load_project() so a bad record never blocks the others.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_FILE):
        self.db_path = Path(db_path)

    def load(self) -> tuple[AnalysisConfig | None, list[dict], dict[str, dict]]:
        """Return (config_or_None, trade_records, {project_id: project_record})."""
        if not self.db_path.exists():
            return None, [], {}

        try:
            raw = json.loads(self.db_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StoreError(f"{self.db_path}: invalid JSON ({e})") from e
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"{self.db_path}: cannot read snapshot ({e})") from e
        if not isinstance(raw, dict):
            raise StoreError(f"{self.db_path}: expected a JSON object at top level")

        trades = raw.get("trades", [])
        if not isinstance(trades, list):
            raise StoreError(f"{self.db_path}: 'trades' must be a list")
        projects = raw.get("projects", {})
        if not isinstance(projects, dict):
            raise StoreError(f"{self.db_path}: 'projects' must be an object")

        config = None
        if raw.get("config") is not None:
            config = AnalysisConfig.from_dict(raw["config"])

        return config, list(trades), dict(projects)

    def save(
        self,
        config: AnalysisConfig | None,
        trades: list[dict],
        projects: dict[str, dict],
    ) -> None:
        """Persist config, trades and projects to disk."""
        raw: dict = {}
        if config is not None:
            raw["config"] = config.to_dict()
        raw["trades"] = trades
        raw["projects"] = projects
        self.db_path.write_text(json.dumps(raw, indent=4))

    def load_project(self, project_id: str) -> ProjectSnapshot | None:
        """Ingest one project's tasks and the shared trades, or None if unknown."""
        _, trade_records, projects = self.load()
        project = projects.get(project_id)
        if project is None:
            return None
        if not isinstance(project, dict):
            raise StoreError(f"project {project_id}: expected an object, got {type(project).__name__}")
        task_records = project.get("tasks", [])
        if not isinstance(task_records, list):
            raise StoreError(f"project {project_id}: 'tasks' must be a list")

        trades, trade_skips = load_trades(trade_records)
        task_set = load_task_set(task_records)
        return ProjectSnapshot(
            id=project_id,
            name=str(project.get("name", project_id)),
            status=project.get("status", ACTIVE_STATUS),
            tasks=task_set.tasks,
            trades=trades,
            skipped=[*trade_skips, *task_set.skipped],
        )

    def project_ids(self, status: str | None = None) -> list[str]:
        """Project ids in file order, optionally only those with *status*.

        A malformed project record counts as active, so that analyzing it
        reports the problem instead of hiding the project.
        """
        _, _, projects = self.load()
        return [pid for pid, p in projects.items() if status is None or project_status(p) == status]

    def generate_id(self, existing: Iterable[str], prefix: str) -> str:
        """Generate the next PREFIX-N id."""
        nums = []
        for key in existing:
            head, _, tail = key.partition("-")
            if head == prefix and tail.isdigit():
                nums.append(int(tail))
        return f"{prefix}-{max(nums, default=0) + 1}"
