"""
Test: Remote plan generator adapter — request shape, error surfacing,
local fallback and the one-at-a-time generation tracker.
"""
import threading

import pytest
import requests

from conftest import FakeRemote, FakeResponse, FakeSession
from teacher_fairy.models import DailyPlanForm, DaySlot, Project, UploadedFile, WeeklyPlanForm
from teacher_fairy.services.plan_generator import (
    GenerationInProgressError,
    GenerationTracker,
    PlanGenerationService,
    RemoteGenerationError,
    RemotePlanClient,
    build_request,
)
from teacher_fairy.services.plan_renderer import render


def _revolution_project():
    project = Project(selected_standards=[
        "CO.SS.MS.1.1 — Analyze continuity and change over time in societies and regions.",
        "CO.SS.MS.1.3 — Evaluate causes and effects of significant historical events.",
    ])
    project.daily.topic = "Causes of the American Revolution"
    return project


class TestBuildRequest:
    def test_payload_shape(self):
        form = WeeklyPlanForm(
            files=[UploadedFile(name="a.txt", size=3, text="abc"), UploadedFile(name="img.png", size=9)],
            days=[DaySlot(files=[UploadedFile(name="b.md", size=2, text="x" * 6000)])],
        )
        body = build_request("Weekly", form, "Be brief")
        assert body["planType"] == "weekly"
        assert body["form"]["planType"] == "weekly"
        assert body["customInstructions"] == "Be brief"
        assert [f["name"] for f in body["filesText"]] == ["a.txt", "b.md"]
        assert len(body["filesText"][1]["text"]) == 5000


class TestRemotePlanClient:
    def test_success(self):
        session = FakeSession(FakeResponse(200, {"html": "<h1>Plan</h1>"}))
        client = RemotePlanClient("http://gen.test/api/plan", session=session)
        assert client.generate("daily", DailyPlanForm()) == "<h1>Plan</h1>"
        assert session.calls[0]["json"]["planType"] == "daily"

    def test_plain_text_is_wrapped(self):
        session = FakeSession(FakeResponse(200, {"html": "Line one\nLine & two"}))
        html = RemotePlanClient("http://gen.test", session=session).generate("daily", DailyPlanForm())
        assert html == "<h1>Generated Plan</h1><p>Line one<br/>Line &amp; two</p>"

    def test_non_success_surfaces_status_and_body(self):
        session = FakeSession(FakeResponse(500, text="upstream exploded"))
        with pytest.raises(RemoteGenerationError) as exc:
            RemotePlanClient("http://gen.test", session=session).generate("daily", DailyPlanForm())
        assert exc.value.status == 500
        assert exc.value.body == "upstream exploded"

    def test_transport_error(self):
        session = FakeSession(requests.ConnectionError("refused"))
        with pytest.raises(RemoteGenerationError) as exc:
            RemotePlanClient("http://gen.test", session=session).generate("daily", DailyPlanForm())
        assert exc.value.status is None

    def test_empty_plan_is_an_error(self):
        session = FakeSession(FakeResponse(200, {"html": "  "}))
        with pytest.raises(RemoteGenerationError):
            RemotePlanClient("http://gen.test", session=session).generate("daily", DailyPlanForm())


class TestPlanGenerationService:
    def test_local_when_ai_disabled(self, remote):
        project = _revolution_project()
        outcome = PlanGenerationService(remote).generate(project, "daily", use_ai=False)
        assert outcome.method == "Local"
        assert remote.calls == []
        assert outcome.html.startswith("<h1>")
        assert "Causes of the American Revolution" in outcome.html
        assert "CO.SS.MS.1.1" in outcome.html and "CO.SS.MS.1.3" in outcome.html

    def test_ai_result_used(self, remote):
        outcome = PlanGenerationService(remote).generate(_revolution_project(), "daily", use_ai=True)
        assert outcome.method == "AI"
        assert outcome.html == "<h1>AI Plan</h1>"
        sent_form = remote.calls[0][1]
        assert sent_form.standards == _revolution_project().selected_standards

    def test_http_500_falls_back_to_identical_local_render(self, failing_remote):
        project = _revolution_project()
        expected = render("daily", project.snapshot("daily"))
        outcome = PlanGenerationService(failing_remote).generate(project, "daily", use_ai=True)
        assert outcome.method == "Local"
        assert outcome.html == expected
        assert outcome.status == 500
        assert outcome.to_dict()["upstreamStatus"] == 500

    def test_instructions_combined(self, remote):
        project = Project()
        project.settings.custom_instructions = "Use tables"
        project.settings.other_requests = "Add a song"
        PlanGenerationService(remote).generate(project, "unit", use_ai=True)
        assert remote.calls[0][2] == "Use tables\nAdd a song"

    def test_uses_project_setting_by_default(self, remote):
        project = Project()
        project.settings.use_ai = True
        PlanGenerationService(remote).generate(project, "weekly")
        assert len(remote.calls) == 1


class _BlockingRemote(FakeRemote):
    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def generate(self, plan_type, form, custom_instructions=""):
        self.entered.set()
        self.release.wait(5)
        return super().generate(plan_type, form, custom_instructions)


class TestGenerationTracker:
    def test_idle_then_done(self, remote):
        tracker = GenerationTracker(PlanGenerationService(remote))
        assert tracker.status() == {"state": "idle"}
        tracker.run(Project(), "daily", use_ai=False)
        status = tracker.status()
        assert status["state"] == "done"
        assert status["method"] == "Local"

    def test_second_request_rejected_while_working(self):
        remote = _BlockingRemote()
        tracker = GenerationTracker(PlanGenerationService(remote))
        thread = tracker.start(Project(), "daily", use_ai=True)
        assert remote.entered.wait(5)
        assert tracker.status()["state"] == "working"
        with pytest.raises(GenerationInProgressError):
            tracker.run(Project(), "daily", use_ai=True)
        remote.release.set()
        thread.join(5)
        assert tracker.status()["state"] == "done"
        assert len(remote.calls) == 1

    def test_error_state_and_slot_released(self, remote):
        class Broken:
            def generate(self, project, plan_type, **kwargs):
                raise ValueError("renderer blew up")

        tracker = GenerationTracker(Broken())
        with pytest.raises(ValueError):
            tracker.run(Project(), "daily")
        assert tracker.status() == {"state": "error", "planType": "daily", "message": "renderer blew up"}
        tracker.service = PlanGenerationService(remote)
        assert tracker.run(Project(), "daily", use_ai=False).method == "Local"
