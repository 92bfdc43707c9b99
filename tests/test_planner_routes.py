"""
Test: Planner API — project state, standards, rendering, generation and
file uploads through the Flask test client.
"""
import io
import json
import time

import pytest

from conftest import load_fixture


def _wait_for(client, state, timeout=5):
    deadline = time.time() + timeout
    while time.time() < deadline:
        status = client.get("/api/generate-plan/status").get_json()
        if status["state"] == state:
            return status
        time.sleep(0.01)
    raise AssertionError(f"generation never reached {state}")


class TestProjectRoutes:
    def test_get_defaults(self, client):
        data = client.get("/api/project").get_json()
        assert data["project"]["state"] == "Colorado"
        assert data["project"]["daily"]["planType"] == "daily"
        assert data["standardsCount"] == 0
        assert data["drive"]["autoBackupMinutes"] == 3

    def test_options(self, client):
        data = client.get("/api/options").get_json()
        assert "6-8" in data["gradeBands"]
        assert data["maxWeekDays"] == 5

    def test_put_replaces_whole_project(self, client, store):
        client.patch("/api/project/field", json={"path": "unit.title", "value": "Old"})
        resp = client.put("/api/project", json={"subject": "Science", "daily": {"topic": "Cells"}})
        assert resp.status_code == 200
        project = store.load().project
        assert project.settings.subject == "Science"
        assert project.daily.topic == "Cells"
        assert project.unit.title == ""

    def test_put_rejects_non_object(self, client):
        assert client.put("/api/project", json=["x"]).status_code == 400

    def test_put_rejects_non_object_file(self, client, store):
        resp = client.put("/api/project", json={"daily": {"topic": "Kept?", "files": ["x"]}})
        assert resp.status_code == 400
        assert store.load().project.daily.topic == ""

    def test_reset(self, client, store):
        client.patch("/api/project/field", json={"path": "daily.topic", "value": "Temp"})
        client.post("/api/project/reset")
        assert store.load().project.daily.topic == ""

    def test_patch_field(self, client, store):
        resp = client.patch("/api/project/field", json={"path": "weekly.days.2.topic", "value": "Deserts"})
        assert resp.status_code == 200
        days = store.load().project.weekly.days
        assert len(days) == 3
        assert days[2].topic == "Deserts"

    def test_patch_settings_field(self, client, store):
        client.patch("/api/project/field", json={"path": "useAi", "value": True})
        assert store.load().project.settings.use_ai is True

    def test_patch_unknown_field(self, client):
        resp = client.patch("/api/project/field", json={"path": "daily.nope", "value": 1})
        assert resp.status_code == 400

    def test_patch_sixth_day_rejected(self, client, store):
        for i in range(5):
            client.patch("/api/project/field", json={"path": f"weekly.days.{i}.topic", "value": f"D{i}"})
        resp = client.patch("/api/project/field", json={"path": "weekly.days.5.topic", "value": "Extra"})
        assert resp.status_code == 400
        assert len(store.load().project.weekly.days) == 5


class TestStandardsRoutes:
    def test_suggest_uses_topics(self, client):
        client.patch("/api/project/field", json={"path": "daily.topic", "value": "The Revolution"})
        data = client.post("/api/standards/suggest", json={"searchTerm": "qqqq"}).get_json()
        assert [s.split(" — ")[0] for s in data["suggestions"]] == ["CO.SS.MS.1.3"]

    def test_suggest_empty_search_returns_pool(self, client):
        data = client.post("/api/standards/suggest", json={}).get_json()
        assert len(data["suggestions"]) == 5

    def test_select_is_idempotent(self, client):
        label = "CO.SS.MS.1.1 — Analyze continuity and change over time in societies and regions."
        client.post("/api/standards/select", json={"label": label})
        data = client.post("/api/standards/select", json={"label": label}).get_json()
        assert data["selected"] == [label]

    def test_deselect_missing_is_noop(self, client):
        client.post("/api/standards/custom", json={"text": "LOCAL.1 — Our own"})
        data = client.post("/api/standards/deselect", json={"label": "NOPE.9"}).get_json()
        assert data["selected"] == ["LOCAL.1 — Our own"]

    def test_custom_blank_rejected(self, client):
        assert client.post("/api/standards/custom", json={"text": " "}).status_code == 400

    def test_clear(self, client):
        client.post("/api/standards/custom", json={"text": "LOCAL.1"})
        assert client.post("/api/standards/clear").get_json()["selected"] == []

    def test_import_file_then_export(self, client, fixtures_dir):
        with open(f"{fixtures_dir}/standards_keyed.json", "rb") as f:
            resp = client.post("/api/standards/import",
                               data={"file": (io.BytesIO(f.read()), "standards.json")},
                               content_type="multipart/form-data")
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 3
        assert client.get("/api/standards/count").get_json() == {"count": 3}

        exported = client.get("/api/standards/export")
        assert "attachment" in exported.headers["Content-Disposition"]
        assert json.loads(exported.data)["Colorado|Science|6-8"][0]["code"] == "CO.SC.MS.1.1"

    def test_import_json_body_rows(self, client):
        resp = client.post("/api/standards/import", json=load_fixture("standards_rows.json"))
        assert resp.status_code == 200
        assert "Colorado|Mathematics|3-5" in resp.get_json()["keys"]

    def test_malformed_import_keeps_catalog(self, client):
        client.post("/api/standards/import", json=load_fixture("standards_keyed.json"))
        resp = client.post("/api/standards/import", data="{broken", content_type="application/json")
        assert resp.status_code == 422
        assert client.get("/api/standards/count").get_json() == {"count": 3}

    def test_non_list_tags_rejected(self, client):
        resp = client.post("/api/standards/import",
                           json={"Colorado|Science|6-8": [{"code": "A", "text": "t", "tags": 5}]})
        assert resp.status_code == 422
        assert client.get("/api/standards/count").get_json() == {"count": 0}

    def test_imported_pool_drives_suggestions(self, client):
        client.post("/api/standards/import", json=load_fixture("standards_keyed.json"))
        client.patch("/api/project/field", json={"path": "subject", "value": "Science"})
        data = client.post("/api/standards/suggest", json={"searchTerm": "energy"}).get_json()
        assert [s.split(" — ")[0] for s in data["suggestions"]] == ["CO.SC.MS.2.4"]


class TestPlanRoutes:
    def test_render_daily_end_to_end(self, client):
        client.patch("/api/project/field", json={"path": "daily.topic",
                                                 "value": "Causes of the American Revolution"})
        for label in ("CO.SS.MS.1.1 — Continuity", "CO.SS.MS.1.3 — Causes"):
            client.post("/api/standards/select", json={"label": label})
        data = client.post("/api/render-plan", json={"planType": "daily"}).get_json()
        assert data["html"].startswith("<h1>")
        assert "Causes of the American Revolution" in data["html"]
        assert "CO.SS.MS.1.1" in data["html"] and "CO.SS.MS.1.3" in data["html"]

    def test_render_bad_type(self, client):
        assert client.post("/api/render-plan", json={"planType": "term"}).status_code == 400

    @pytest.mark.parametrize("include", [["topic"], [1], "topic", [["topic", True, "extra"]]])
    @pytest.mark.parametrize("url", ["/api/render-plan", "/api/generate-plan", "/api/generate-plan/start"])
    def test_malformed_include_rejected(self, client, url, include):
        resp = client.post(url, json={"planType": "daily", "useAi": False, "include": include})
        assert resp.status_code == 400
        assert "include" in resp.get_json()["error"]

    def test_generate_local(self, client, remote):
        data = client.post("/api/generate-plan", json={"planType": "unit", "useAi": False}).get_json()
        assert data["method"] == "Local"
        assert remote.calls == []

    def test_generate_ai(self, client):
        data = client.post("/api/generate-plan", json={"planType": "weekly", "useAi": True}).get_json()
        assert data == {"html": "<h1>AI Plan</h1>", "method": "AI"}

    def test_generate_falls_back(self, client, remote):
        from teacher_fairy.services.plan_generator import RemoteGenerationError
        remote.error = RemoteGenerationError("Plan generator returned 502", status=502, body="bad gateway")
        data = client.post("/api/generate-plan", json={"planType": "daily", "useAi": True}).get_json()
        assert data["method"] == "Local"
        assert data["upstreamStatus"] == 502
        assert data["html"].startswith("<h1>Daily Lesson Plan</h1>")

    def test_background_generation(self, client):
        resp = client.post("/api/generate-plan/start", json={"planType": "daily", "useAi": True})
        assert resp.status_code == 202
        status = _wait_for(client, "done")
        assert status["html"] == "<h1>AI Plan</h1>"


class TestUploadRoute:
    def test_attach_text_file_to_day(self, client, store):
        resp = client.post("/api/upload-file", data={
            "planType": "weekly", "dayIndex": "1",
            "file": (io.BytesIO(b"Reading on river valleys"), "reading.txt"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 200
        assert resp.get_json()["file"] == {"name": "reading.txt", "size": 24, "text": "Reading on river valleys"}
        days = store.load().project.weekly.days
        assert days[1].files[0].name == "reading.txt"

    def test_unreadable_file_has_no_text(self, client, store):
        client.post("/api/upload-file", data={
            "planType": "daily", "file": (io.BytesIO(b"\x89PNG..."), "map.png"),
        }, content_type="multipart/form-data")
        attached = store.load().project.daily.files[0]
        assert attached.name == "map.png"
        assert attached.text is None

    def test_day_index_only_for_weekly(self, client):
        resp = client.post("/api/upload-file", data={
            "planType": "daily", "dayIndex": "0", "file": (io.BytesIO(b"x"), "a.txt"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_no_file(self, client):
        assert client.post("/api/upload-file", data={"planType": "daily"}).status_code == 400
