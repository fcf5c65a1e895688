import io

import pytest

from conftest import d, make_task
from sitecoord.analysis import (
    AnalysisResult,
    analyze_project,
    analyze_tasks,
    detect_schedule_conflicts,
    detect_trade_overlaps,
    infer_missing_dependencies,
    overlap_window,
    sort_chronologically,
)
from sitecoord.config import AnalysisConfig
from sitecoord.exceptions import ConfigError, InvalidInputError
from sitecoord.logger import setup_logger
from sitecoord.models import ProjectSnapshot, SkippedRecord


# ---------------------------------------------------------------------------
# Trade overlaps
# ---------------------------------------------------------------------------


def test_overlap_inclusive_boundary(trades):
    tasks = [
        make_task("A", "TR-1", d(1), d(5)),
        make_task("B", "TR-2", d(5), d(10)),
    ]
    [finding] = detect_trade_overlaps(tasks, trades)
    assert finding.overlap_start == d(5)
    assert finding.overlap_end == d(5)
    assert finding.overlap_days == 1
    assert (finding.trade1_name, finding.trade2_name) == ("Terrassement", "Plomberie")


def test_no_false_overlap(trades):
    tasks = [
        make_task("A", "TR-1", d(1), d(4)),
        make_task("B", "TR-2", d(5), d(10)),
    ]
    assert detect_trade_overlaps(tasks, trades) == []


def test_overlap_is_symmetric(trades):
    a = make_task("A", "TR-1", d(3), d(12))
    b = make_task("B", "TR-2", d(7), d(20))

    forward = detect_trade_overlaps([a, b], trades)
    backward = detect_trade_overlaps([b, a], trades)

    assert len(forward) == len(backward) == 1
    assert {forward[0].task1_id, forward[0].task2_id} == {backward[0].task1_id, backward[0].task2_id}
    assert (forward[0].overlap_start, forward[0].overlap_end, forward[0].overlap_days) == (
        backward[0].overlap_start, backward[0].overlap_end, backward[0].overlap_days
    )
    assert overlap_window(d(3), d(12), d(7), d(20)) == overlap_window(d(7), d(20), d(3), d(12))


def test_same_trade_never_overlaps(trades):
    tasks = [
        make_task("A", "TR-1", d(1), d(10)),
        make_task("B", "TR-1", d(2), d(8)),
    ]
    assert detect_trade_overlaps(tasks, trades) == []


def test_overlap_ignores_unassigned_and_unscheduled(trades):
    tasks = [
        make_task("A", "TR-1", d(1), d(10)),
        make_task("B", None, d(1), d(10)),
        make_task("C", "TR-2", d(1), None),
        make_task("D", "TR-3", None, None),
    ]
    assert detect_trade_overlaps(tasks, trades) == []


def test_overlap_unknown_trade_falls_back_to_id(trades):
    tasks = [
        make_task("A", "TR-1", d(1), d(10)),
        make_task("B", "TR-99", d(2), d(3)),
    ]
    [finding] = detect_trade_overlaps(tasks, trades)
    assert finding.trade2_name == "TR-99"
    assert finding.overlap_days == 2


def test_overlap_every_pair_across_trades(trades):
    tasks = [
        make_task("A1", "TR-1", d(1), d(10)),
        make_task("A2", "TR-1", d(11), d(20)),
        make_task("B1", "TR-2", d(5), d(15)),
        make_task("C1", "TR-3", d(9), d(9)),
    ]
    pairs = [(o.task1_id, o.task2_id) for o in detect_trade_overlaps(tasks, trades)]
    assert pairs == [("A1", "B1"), ("A2", "B1"), ("A1", "C1"), ("B1", "C1")]


def test_overlap_requires_task_collection():
    with pytest.raises(InvalidInputError):
        detect_trade_overlaps(None)


# ---------------------------------------------------------------------------
# Schedule conflicts
# ---------------------------------------------------------------------------


def test_conflict_magnitude():
    tasks = [
        make_task("DEP", start=d(1), end=d(15)),
        make_task("T", start=d(10), end=d(20), depends_on=["DEP"]),
    ]
    [conflict] = detect_schedule_conflicts(tasks)
    assert conflict.task_id == "T"
    assert conflict.dependency_id == "DEP"
    assert conflict.conflict_days == 5


def test_no_conflict_when_starting_after_dependency():
    tasks = [
        make_task("DEP", start=d(1), end=d(15)),
        make_task("T", start=d(20), end=d(25), depends_on=["DEP"]),
    ]
    assert detect_schedule_conflicts(tasks) == []


def test_no_conflict_when_starting_on_dependency_end():
    tasks = [
        make_task("DEP", start=d(1), end=d(15)),
        make_task("T", start=d(15), end=d(25), depends_on=["DEP"]),
    ]
    assert detect_schedule_conflicts(tasks) == []


def test_conflict_skips_dangling_and_unscheduled_dependencies():
    tasks = [
        make_task("DEP", start=d(1), end=None),
        make_task("T", start=d(2), end=d(5), depends_on=["DEP", "GHOST"]),
        make_task("U", start=None, end=None, depends_on=["T"]),
    ]
    assert detect_schedule_conflicts(tasks) == []


def test_conflict_uses_supplied_lookup():
    dep = make_task("DEP", start=d(1), end=d(15))
    task = make_task("T", start=d(12), end=d(20), depends_on=["DEP"])
    [conflict] = detect_schedule_conflicts([task], {"DEP": dep})
    assert conflict.conflict_days == 3


def test_conflict_on_cycle_evaluates_each_edge():
    tasks = [
        make_task("A", start=d(1), end=d(10), depends_on=["B"]),
        make_task("B", start=d(5), end=d(15), depends_on=["A"]),
    ]
    found = {(c.task_id, c.dependency_id): c.conflict_days for c in detect_schedule_conflicts(tasks)}
    assert found == {("A", "B"): 14, ("B", "A"): 5}


# ---------------------------------------------------------------------------
# Missing dependencies
# ---------------------------------------------------------------------------


def test_missing_dependency_window():
    tasks = [
        make_task("NEAR", start=d(1), end=d(6)),
        make_task("FAR", start=d(1), end=d(3)),
        make_task("T", start=d(10), end=d(12)),
    ]
    [finding] = infer_missing_dependencies(sort_chronologically(tasks))
    assert finding.task_id == "T"
    assert finding.candidate_predecessor_ids == ["NEAR"]
    assert finding.candidates[0].gap_days == 4
    assert finding.confirmed is False


def test_missing_dependency_same_day_handoff_included():
    tasks = [
        make_task("P", start=d(1), end=d(10)),
        make_task("T", start=d(10), end=d(12)),
    ]
    [finding] = infer_missing_dependencies(sort_chronologically(tasks))
    assert finding.candidates[0].gap_days == 0


def test_missing_dependency_excludes_open_predecessor():
    tasks = [
        make_task("P", start=d(1), end=d(11)),
        make_task("T", start=d(10), end=d(12)),
    ]
    assert infer_missing_dependencies(sort_chronologically(tasks)) == []


def test_missing_dependency_skips_tasks_with_declared_dependencies():
    tasks = [
        make_task("P", start=d(1), end=d(8)),
        make_task("Q", start=d(1), end=d(9)),
        make_task("T", start=d(10), end=d(12), depends_on=["P"]),
    ]
    assert infer_missing_dependencies(sort_chronologically(tasks)) == []


def test_missing_dependency_custom_lookback():
    tasks = [
        make_task("P", start=d(1), end=d(3)),
        make_task("T", start=d(10), end=d(12)),
    ]
    assert infer_missing_dependencies(sort_chronologically(tasks), lookback_days=5) == []
    [finding] = infer_missing_dependencies(sort_chronologically(tasks), lookback_days=7)
    assert finding.candidate_predecessor_ids == ["P"]


def test_missing_dependency_unscheduled_predecessor_with_end():
    # No planned start: sorts last, so it can only be a predecessor of nothing
    tasks = [
        make_task("T", start=d(10), end=d(12)),
        make_task("X", start=None, end=d(8)),
    ]
    assert infer_missing_dependencies(sort_chronologically(tasks)) == []


def test_missing_dependency_negative_lookback_rejected():
    with pytest.raises(ConfigError):
        infer_missing_dependencies([], lookback_days=-1)


def test_sort_chronologically_is_stable_with_unscheduled_last():
    tasks = [
        make_task("U1"),
        make_task("B", start=d(5)),
        make_task("A", start=d(2)),
        make_task("U2"),
        make_task("C", start=d(5)),
    ]
    assert [t.id for t in sort_chronologically(tasks)] == ["A", "B", "C", "U1", "U2"]


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------


def test_scenario_one_overlap_no_conflict(scenario_tasks, trades):
    result = analyze_tasks(scenario_tasks, trades)

    [overlap] = result.overlaps
    assert (overlap.task1_id, overlap.task2_id) == ("T-1", "T-2")
    assert (overlap.overlap_start, overlap.overlap_end) == (d(8), d(10))
    assert overlap.overlap_days == 3
    assert result.conflicts == []
    assert result.dependents["T-2"] == ["T-3"]


def test_analysis_is_idempotent(scenario_tasks, trades):
    first = analyze_tasks(scenario_tasks, trades)
    second = analyze_tasks(scenario_tasks, trades)
    assert first.to_dict() == second.to_dict()
    assert first.overlaps == second.overlaps
    assert first.candidates == second.candidates


def test_analysis_uses_configured_lookback():
    tasks = [
        make_task("P", start=d(1), end=d(3)),
        make_task("T", start=d(10), end=d(12)),
    ]
    assert analyze_tasks(tasks).candidates == []
    assert len(analyze_tasks(tasks, config=AnalysisConfig(lookback_days=10)).candidates) == 1


def test_confirmed_and_candidate_findings_are_separate():
    tasks = [
        make_task("DEP", "TR-1", d(1), d(15)),
        make_task("T", "TR-2", d(10), d(20), depends_on=["DEP"]),
        make_task("N", None, d(22), d(23)),
    ]
    result = analyze_tasks(tasks)
    assert all(f.confirmed for f in result.confirmed_findings())
    assert [f.kind.value for f in result.candidate_findings()] == ["missing_dependency"]
    assert result.has_issues


def test_empty_task_set_is_success():
    result = analyze_tasks([])
    assert result == AnalysisResult()
    assert not result.has_issues


def test_analyze_project_carries_skipped(scenario_tasks, trades):
    skipped = [SkippedRecord(index=3, record_id=None, reason="missing task id")]
    snapshot = ProjectSnapshot(id="P-1", name="Maison", tasks=scenario_tasks, trades=trades, skipped=skipped)
    result = analyze_project(snapshot)
    assert result.skipped == skipped
    assert result.to_dict()["skipped_records"] == 1


def test_analyze_project_without_tasks():
    result = analyze_project(ProjectSnapshot(id="P-1", name="Vide"))
    assert result.overlaps == result.conflicts == result.candidates == []


def test_findings_logged_at_verbosity_one(scenario_tasks, trades):
    stream = io.StringIO()
    setup_logger(1, stream)
    analyze_tasks(scenario_tasks, trades)
    output = stream.getvalue()
    assert 'Overlap: "Terrassement" (task: Fouilles) and "Plomberie" (task: Réseaux)' in output
    assert "Comparing" not in output


def test_checks_logged_at_verbosity_two(scenario_tasks, trades):
    stream = io.StringIO()
    setup_logger(2, stream)
    analyze_tasks(scenario_tasks, trades)
    assert "Comparing T-1 (TR-1) with T-2 (TR-2)" in stream.getvalue()
