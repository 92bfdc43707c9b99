"""
Shared test fixtures for Teacher Fairy.
In-memory state, fake Drive storage and fake HTTP sessions.
Zero network calls — all data from local fixtures.
"""
import json
import os

import pytest

from teacher_fairy.app import create_app
from teacher_fairy.services.google_drive import DriveAuthError
from teacher_fairy.services.plan_generator import PlanGenerationService, RemoteGenerationError
from teacher_fairy.services.state_store import InMemoryStateStore

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def load_fixture(name):
    with open(os.path.join(FIXTURES_DIR, name), encoding="utf-8") as f:
        return json.load(f)


class FakeResponse:
    """Just enough of ``requests.Response`` for the adapters."""

    def __init__(self, status_code=200, json_data=None, text=None, content=None):
        self.status_code = status_code
        self._json = json_data
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text
        self.content = content if content is not None else text.encode("utf-8")

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._json is None:
            return json.loads(self.text)
        return self._json


class FakeSession:
    """Records requests and replays queued responses (or raises queued errors)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method, url, **kwargs):
        return self._next(method, url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


class FakeDriveStorage:
    """Backup storage port kept in memory."""

    def __init__(self, connected=True):
        self.connected = connected
        self.files = []
        self.folders = {}
        self.upload_error = None

    def authenticate(self):
        if not self.connected:
            raise DriveAuthError("Not connected to Google Drive")
        return {}

    def upload_file(self, name, content, folder_id=None):
        if self.upload_error:
            raise self.upload_error
        record = {"id": f"file-{len(self.files) + 1}", "name": name,
                  "content": content, "folder_id": folder_id}
        self.files.append(record)
        return {"id": record["id"], "name": name}

    def find_latest(self, name, folder_id=None):
        for record in reversed(self.files):
            if record["name"] == name and (folder_id is None or record["folder_id"] == folder_id):
                return {"id": record["id"], "name": name}
        return None

    def download(self, file_id):
        for record in self.files:
            if record["id"] == file_id:
                content = record["content"]
                return content if isinstance(content, bytes) else content.encode("utf-8")
        raise KeyError(file_id)

    def ensure_folder(self, name):
        if name not in self.folders:
            self.folders[name] = {"id": f"folder-{len(self.folders) + 1}", "name": name}
        return self.folders[name]


class FakeRemote:
    """Stand-in for ``RemotePlanClient``."""

    def __init__(self, html="<h1>AI Plan</h1>", error=None):
        self.html = html
        self.error = error
        self.calls = []

    def generate(self, plan_type, form, custom_instructions=""):
        self.calls.append((plan_type, form, custom_instructions))
        if self.error:
            raise self.error
        return self.html


@pytest.fixture
def fixtures_dir():
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def drive():
    return FakeDriveStorage()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def failing_remote():
    return FakeRemote(error=RemoteGenerationError("Plan generator returned 500", status=500, body="boom"))


@pytest.fixture
def app(store, drive, remote):
    app = create_app(state_store=store, backup_storage=drive,
                     plan_service=PlanGenerationService(remote))
    app.config['TESTING'] = True
    yield app
    app.config['AUTO_BACKUP'].stop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def no_openai_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
