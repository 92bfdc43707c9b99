"""
Test: POST /api/plan — CORS, config and input errors, upstream passthrough.
The OpenAI client is replaced with a local fake.
"""
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from teacher_fairy.services import openai_plan_service
from teacher_fairy.services.openai_plan_service import (
    SYSTEM_PROMPT,
    build_system_prompt,
    build_user_prompt,
    file_snippets,
)

PLAN_BODY = {"planType": "daily", "form": {"topic": "Maps"}, "filesText": [], "customInstructions": ""}


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    completions = None

    def __init__(self, api_key=None):
        self.api_key = api_key
        self.chat = SimpleNamespace(completions=FakeOpenAI.completions)


@pytest.fixture
def fake_openai(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    completions = FakeCompletions(content="<h1>Plan</h1><p>Maps</p>")
    monkeypatch.setattr(FakeOpenAI, "completions", completions)
    monkeypatch.setattr(openai_plan_service, "OpenAI", FakeOpenAI)
    return completions


def _status_error(status, body):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, text=body, request=request)
    return openai.APIStatusError("upstream", response=response, body=None)


class TestPreflight:
    def test_options_returns_204_with_cors(self, client):
        resp = client.open("/api/plan", method="OPTIONS")
        assert resp.status_code == 204
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert resp.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
        assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"

    def test_other_methods_405(self, client):
        resp = client.get("/api/plan")
        assert resp.status_code == 405
        assert resp.get_data(as_text=True) == "Method Not Allowed"
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


class TestPlanEndpoint:
    def test_missing_key_is_fixed_error(self, client, no_openai_key, monkeypatch):
        def boom(*args, **kwargs):
            raise AssertionError("no client should be built")
        monkeypatch.setattr(openai_plan_service, "OpenAI", boom)
        resp = client.post("/api/plan", json=PLAN_BODY)
        assert resp.status_code == 500
        assert resp.get_data(as_text=True) == "Missing OPENAI_API_KEY"

    @pytest.mark.parametrize("body", [{"form": {"topic": "x"}}, {"planType": "daily"}, {}])
    def test_missing_fields_400(self, client, fake_openai, body):
        resp = client.post("/api/plan", json=body)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Missing planType or form"}
        assert fake_openai.kwargs is None

    def test_success(self, client, fake_openai):
        resp = client.post("/api/plan", json={**PLAN_BODY, "customInstructions": "Keep it short"})
        assert resp.status_code == 200
        assert resp.get_json() == {"html": "<h1>Plan</h1><p>Maps</p>"}
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert fake_openai.kwargs["temperature"] == 0.3
        assert fake_openai.kwargs["max_tokens"] == 2500
        system = fake_openai.kwargs["messages"][0]["content"]
        assert system.endswith("- Extra user directives:\nKeep it short")

    def test_model_override(self, client, fake_openai, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
        client.post("/api/plan", json=PLAN_BODY)
        assert fake_openai.kwargs["model"] == "gpt-test"

    def test_plain_text_wrapped(self, client, fake_openai):
        fake_openai.content = "Just words\nmore words"
        resp = client.post("/api/plan", json=PLAN_BODY)
        assert resp.get_json()["html"] == "<h1>Generated Plan</h1><p>Just words<br/>more words</p>"

    def test_upstream_status_passed_through(self, client, fake_openai):
        fake_openai.error = _status_error(429, '{"error": "rate limited"}')
        resp = client.post("/api/plan", json=PLAN_BODY)
        assert resp.status_code == 429
        assert resp.get_data(as_text=True) == '{"error": "rate limited"}'

    def test_bad_json_is_500(self, client, fake_openai):
        resp = client.post("/api/plan", data="{oops", content_type="application/json")
        assert resp.status_code == 500


class TestPrompts:
    def test_system_prompt_without_directives(self):
        assert build_system_prompt("") == SYSTEM_PROMPT
        assert "Day, Date, Topic, Key Activities, Assessment/Exit, Materials, Notes, Attachments" in SYSTEM_PROMPT

    def test_file_snippets(self):
        snippets = file_snippets([{"name": "a.txt", "text": "x" * 6000}, {"name": "b.txt", "text": "  "}])
        assert snippets == "\n[a.txt]\n" + "x" * 5000

    def test_no_file_text(self):
        assert file_snippets([]) == "(no file text)"

    def test_user_prompt(self):
        prompt = build_user_prompt("weekly", {"topic": "Maps"}, [])
        assert prompt.startswith("Plan type: WEEKLY\nForm (JSON):\n")
        assert json.dumps({"topic": "Maps"}, indent=2) in prompt
        assert prompt.endswith("Return ONLY the HTML snippet.")
