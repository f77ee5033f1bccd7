from __future__ import annotations

import dataclasses
import json
from concurrent.futures import ThreadPoolExecutor

from fastapi.testclient import TestClient

from persistence.record_store import JsonRecordStore

from .fakes import FlakyDocument

JSON_HEADERS = {"content-type": "application/json"}


def _create(client, title="Buy milk", description="2 litres"):
    r = client.post("/tasks", json={"title": title, "description": description})
    assert r.status_code == 201
    return r.json()


def test_create_returns_new_task(client):
    task = _create(client)

    assert set(task) == {"id", "title", "description", "created_at", "updated_at"}
    assert task["title"] == "Buy milk"
    assert task["description"] == "2 litres"
    assert task["updated_at"] is None
    assert task["created_at"]

    r = client.get("/tasks")
    assert r.status_code == 200
    assert r.json() == [task]


def test_create_requires_title_and_description(client):
    r = client.post("/tasks", json={"title": "only a title"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Title or description not provided."

    r = client.post("/tasks", json={"title": "  ", "description": "blank title"})
    assert r.status_code == 400

    r = client.post("/tasks", content=b"not json", headers={"content-type": "application/json"})
    assert r.status_code == 400

    r = client.post("/tasks")
    assert r.status_code == 400

    assert client.get("/tasks").json() == []


def test_get_by_id(client):
    task = _create(client)

    r = client.get(f"/tasks/{task['id']}")
    assert r.status_code == 200
    assert r.json() == [task]

    r = client.get("/tasks/does-not-exist")
    assert r.status_code == 404
    assert r.json()["detail"] == "Record not found."

    r = client.get("/tasks/%20")
    assert r.status_code == 400
    assert r.json()["detail"] == "Id not provided."


def test_list_filters_by_title_or_description(client):
    milk = _create(client, "Buy milk", "at the store")
    dog = _create(client, "Walk dog", "park")
    _create(client, "Read", "a book")

    r = client.get("/tasks", params={"title": "MILK"})
    assert [t["id"] for t in r.json()] == [milk["id"]]

    r = client.get("/tasks", params={"title": "milk", "description": "park"})
    assert [t["id"] for t in r.json()] == [milk["id"], dog["id"]]


def test_update_task(client):
    task = _create(client)

    r = client.put(f"/tasks/{task['id']}", json={"title": "Buy oat milk", "description": "1 litre"})
    assert r.status_code == 204
    assert r.content == b""

    updated = client.get(f"/tasks/{task['id']}").json()[0]
    assert updated["id"] == task["id"]
    assert updated["title"] == "Buy oat milk"
    assert updated["description"] == "1 litre"
    assert updated["created_at"] == task["created_at"]
    assert updated["updated_at"] is not None


def test_update_errors(client):
    task = _create(client)

    r = client.put(f"/tasks/{task['id']}", json={"description": "no title"})
    assert r.status_code == 400

    r = client.put("/tasks/missing", json={"title": "a", "description": "b"})
    assert r.status_code == 404

    r = client.put("/tasks/%20", json={"title": "a", "description": "b"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Id not provided."


def test_delete_task(client):
    task = _create(client)

    r = client.delete(f"/tasks/{task['id']}")
    assert r.status_code == 204
    assert client.get("/tasks").json() == []

    r = client.delete(f"/tasks/{task['id']}")
    assert r.status_code == 404


def test_completion_flow(client):
    task = _create(client)

    r = client.patch(f"/tasks/{task['id']}/complete")
    assert r.status_code == 200
    done = r.json()
    assert done["id"] == task["id"]
    assert done["completed_at"]

    assert client.get("/tasks").json() == []
    assert client.get("/tasks", params={"isCompleted": "true"}).json() == [done]
    assert client.get("/tasks", params={"isCompleted": "TRUE"}).json() == [done]
    assert client.get("/tasks", params={"isCompleted": "false"}).json() == []
    assert client.get(f"/tasks/{task['id']}", params={"isCompleted": "true"}).json() == [done]
    assert client.get(f"/tasks/{task['id']}").status_code == 404

    r = client.patch(f"/tasks/{task['id']}/complete")
    assert r.status_code == 409
    assert r.json()["detail"] == "Task is already completed."

    r = client.patch("/tasks/unknown/complete")
    assert r.status_code == 404


def test_delete_completed_task(client):
    task = _create(client)
    client.patch(f"/tasks/{task['id']}/complete")

    assert client.delete(f"/tasks/{task['id']}").status_code == 404
    assert client.delete(f"/tasks/{task['id']}", params={"isCompleted": "true"}).status_code == 204
    assert client.get("/tasks", params={"isCompleted": "true"}).json() == []


def test_tasks_survive_restart(sandbox_settings):
    import app as app_module

    first = TestClient(app_module.create_app(sandbox_settings))
    task = _create(first)

    second = TestClient(app_module.create_app(sandbox_settings))
    assert second.get(f"/tasks/{task['id']}").json() == [task]

    doc = json.loads(sandbox_settings.db_path.read_text(encoding="utf-8"))
    assert doc["tasks"] == [task]


def test_export_without_tasks_is_404_and_writes_nothing(client, sandbox_settings):
    r = client.get("/tasks/export")
    assert r.status_code == 404
    assert r.json()["detail"] == "No tasks found to export."
    assert not (sandbox_settings.export_dir / "tasks.csv").exists()


def test_export_writes_csv_attachment(client, sandbox_settings):
    _create(client, "Comprar pão", "padaria, cedo")
    _create(client, "Walk dog", "park")

    r = client.get("/tasks/export")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment" in r.headers["content-disposition"]
    assert 'filename="tasks.csv"' in r.headers["content-disposition"]

    lines = r.text.splitlines()
    assert lines == ["Título,Descrição", 'Comprar pão,"padaria, cedo"', "Walk dog,park"]
    assert (sandbox_settings.export_dir / "tasks.csv").read_text(encoding="utf-8").startswith("Título")


def test_export_write_failure_is_500(sandbox_settings, tmp_path):
    import app as app_module

    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    settings = dataclasses.replace(sandbox_settings, export_dir=blocker / "exports")
    client = TestClient(app_module.create_app(settings))
    _create(client)

    r = client.get("/tasks/export")
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to export tasks to CSV."


def test_persist_failure_is_500(sandbox_settings):
    import app as app_module

    doc = FlakyDocument(sandbox_settings.db_path)
    client = TestClient(app_module.create_app(sandbox_settings, store=JsonRecordStore(doc)))
    doc.fail = True

    r = client.post("/tasks", json={"title": "a", "description": "b"})
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to persist tasks."

    # the server keeps serving after the failure
    assert client.get("/tasks").status_code == 200


def test_unencodable_text_is_rejected_and_later_writes_succeed(client, sandbox_settings):
    r = client.post("/tasks", content=b'{"title": "\\ud800", "description": "x"}', headers=JSON_HEADERS)
    assert r.status_code == 400
    assert r.json()["detail"] == "Title or description not provided."

    task = _create(client)
    r = client.put(
        f"/tasks/{task['id']}", content=b'{"title": "ok", "description": "\\udfff"}', headers=JSON_HEADERS
    )
    assert r.status_code == 400

    assert client.get("/tasks").json() == [task]
    doc = json.loads(sandbox_settings.db_path.read_text(encoding="utf-8"))
    assert doc["tasks"] == [task]


def test_concurrent_completion_yields_one_success_and_one_conflict(client):
    tasks = [_create(client, title=f"task {i}") for i in range(10)]

    def _complete(task_id: str) -> int:
        return client.patch(f"/tasks/{task_id}/complete").status_code

    with ThreadPoolExecutor(max_workers=2) as pool:
        for task in tasks:
            statuses = sorted(pool.map(_complete, [task["id"], task["id"]]))
            assert statuses == [200, 409]

    assert client.get("/tasks").json() == []
    assert len(client.get("/tasks", params={"isCompleted": "true"}).json()) == 10
