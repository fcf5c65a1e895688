"""Periodic re-analysis of every active project."""

from __future__ import annotations

import threading
from collections.abc import Callable

from sitecoord.analysis import AnalysisResult, analyze_project
from sitecoord.config import AnalysisConfig
from sitecoord.exceptions import SitecoordError
from sitecoord.logger import get_logger
from sitecoord.models import ProjectSnapshot
from sitecoord.persistence import ACTIVE_STATUS, Store

logger = get_logger()

FindingsHandler = Callable[[ProjectSnapshot, AnalysisResult], None]


class AnalysisRunner:
    """Runs the analysis over all active projects, one run per project at a time.

    The analysis itself is pure; the runner only loads snapshots, hands the
    result to *on_result* (store, alert, print...) and keeps a lock per
    project so two passes never interleave on the same project.
    """

    def __init__(
        self,
        store: Store,
        config: AnalysisConfig | None = None,
        on_result: FindingsHandler | None = None,
    ):
        self.store = store
        self.config = config or AnalysisConfig()
        self.on_result = on_result
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, project_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(project_id, threading.Lock())

    def run_project(self, project_id: str) -> AnalysisResult | None:
        """Analyze one project. Returns None if it is unknown or already running."""
        lock = self._lock_for(project_id)
        if not lock.acquire(blocking=False):
            logger.warning("Analysis of project %s already in progress; skipping this run", project_id)
            return None
        try:
            snapshot = self.store.load_project(project_id)
            if snapshot is None:
                logger.error("Project %s not found", project_id)
                return None
            result = analyze_project(snapshot, self.config)
            if self.on_result is not None:
                self.on_result(snapshot, result)
            return result
        finally:
            lock.release()

    def run_once(self) -> dict[str, AnalysisResult]:
        """Analyze every active project; a failing project does not stop the others."""
        logger.info("Analyzing schedules of active projects...")
        results: dict[str, AnalysisResult] = {}
        try:
            project_ids = self.store.project_ids(status=ACTIVE_STATUS)
        except SitecoordError as e:
            logger.error("Could not list projects: %s", e)
            return results

        for pid in project_ids:
            try:
                result = self.run_project(pid)
            except SitecoordError as e:
                logger.error("Error while analyzing project %s: %s", pid, e)
                continue
            except Exception:
                logger.exception("Unexpected error while analyzing project %s", pid)
                continue
            if result is not None:
                results[pid] = result
        return results

    def run_forever(self, stop_event: threading.Event) -> None:
        """Run immediately, then every check_interval_hours until *stop_event* is set."""
        interval = self.config.check_interval_hours * 3600
        logger.info("Trade coordination runner started (every %.1fh)", self.config.check_interval_hours)
        while not stop_event.is_set():
            self.run_once()
            stop_event.wait(interval)
        logger.info("Trade coordination runner stopped")
