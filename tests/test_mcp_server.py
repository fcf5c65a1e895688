import json

import pytest

from sitecoord import mcp_server
from sitecoord.persistence import Store


@pytest.fixture(autouse=True)
def site(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    Store().save(
        None,
        [{"id": "TR-1", "name": "Terrassement"}, {"id": "TR-2", "name": "Plomberie"}],
        {
            "P-1": {
                "name": "Maison",
                "status": "active",
                "tasks": [
                    {"id": "T-1", "trade_id": "TR-1", "planned_start": "2025-01-01", "planned_end": "2025-01-10"},
                    {"id": "T-2", "trade_id": "TR-2", "planned_start": "2025-01-08", "planned_end": "2025-01-20",
                     "depends_on": ["T-1"]},
                    {"id": "T-3", "planned_start": "2025-01-22", "planned_end": "2025-01-24"},
                ],
            }
        },
    )


def test_list_projects():
    [project] = json.loads(mcp_server.list_projects())
    assert project == {"id": "P-1", "name": "Maison", "status": "active", "tasks": 3}


def test_analyze_project():
    data = json.loads(mcp_server.analyze_project("P-1"))
    assert data["overlaps"][0]["overlap_days"] == 3
    assert data["conflicts"] == [
        {"kind": "schedule_conflict", "task_id": "T-2", "dependency_id": "T-1", "conflict_days": 2}
    ]
    assert data["missing_dependencies"][0]["candidate_predecessor_ids"] == ["T-2"]


def test_missing_dependencies_custom_window():
    assert json.loads(mcp_server.get_missing_dependencies("P-1", lookback_days=1)) == []


def test_coordination_report_unknown_project():
    assert mcp_server.get_coordination_report("P-404").startswith("Error")


def test_impacted_tasks():
    data = json.loads(mcp_server.get_impacted_tasks("P-1", "T-1"))
    assert data == {"task_id": "T-1", "direct": ["T-2"], "all": ["T-2"]}


def test_set_task_status():
    assert mcp_server.set_task_status("P-1", "T-3", "delayed") == "Set T-3 from planned to delayed."
    report = json.loads(mcp_server.get_coordination_report("P-1"))
    assert report["delayed_tasks"] == 1
    assert mcp_server.set_task_status("P-1", "T-3", "paused").startswith("Error")


def test_list_projects_with_malformed_record():
    store = Store()
    config, trades, projects = store.load()
    projects["P-2"] = {"name": "Casse", "tasks": 5}
    projects["P-3"] = "broken"
    store.save(config, trades, projects)
    listed = {p["id"]: p for p in json.loads(mcp_server.list_projects())}
    assert listed["P-2"]["tasks"] == 0
    assert listed["P-3"] == {"id": "P-3", "name": "P-3", "status": "active", "tasks": 0}
    assert mcp_server.set_task_status("P-3", "T-1", "completed") == "Error: project P-3 not found."
