"""
Remote Plan Generator Adapter
=============================

Sends a plan snapshot to the generation endpoint and falls back to the Local
Plan Renderer whenever the call fails or AI generation is switched off.

- ``RemotePlanClient`` speaks the endpoint's JSON contract over ``requests``
  and raises ``RemoteGenerationError`` with the raw status and body.
- ``PlanGenerationService`` freezes the form, renders the local fallback
  first, then tries the remote call.
- ``GenerationTracker`` holds the Idle / Working / Done / Error state and
  rejects a second request while one is running.
"""
import copy
import logging
import threading
from dataclasses import dataclass
from typing import Optional

import requests

from ..config import PLAN_REQUEST_TIMEOUT, config
from ..models import normalize_plan_type
from .file_text import files_text
from .openai_plan_service import wrap_plain_text
from .plan_renderer import ALLOWED_TAGS, fragment_tags, render

logger = logging.getLogger(__name__)


class RemoteGenerationError(RuntimeError):
    """The generation endpoint failed; ``status`` is None for transport errors."""

    def __init__(self, message, status=None, body=""):
        super().__init__(message)
        self.status = status
        self.body = body


class GenerationInProgressError(RuntimeError):
    """A generation request is already running."""


def collect_files(form):
    """All file descriptors on a form, including per-day attachments."""
    files = list(form.files)
    for day in getattr(form, "days", []):
        files.extend(day.files)
    return files


def build_request(plan_type, form, custom_instructions=""):
    """JSON body for the generation endpoint."""
    return {
        "planType": normalize_plan_type(plan_type),
        "form": form.to_dict(),
        "filesText": files_text(collect_files(form)),
        "customInstructions": custom_instructions or "",
    }


class RemotePlanClient:
    """HTTP client for ``POST /api/plan``."""

    def __init__(self, endpoint_url=None, session=None, timeout=PLAN_REQUEST_TIMEOUT):
        self.endpoint_url = endpoint_url or config.plan_endpoint_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def generate(self, plan_type, form, custom_instructions=""):
        payload = build_request(plan_type, form, custom_instructions)
        try:
            resp = self.session.post(self.endpoint_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteGenerationError(f"Could not reach plan generator: {e}") from e

        if not resp.ok:
            raise RemoteGenerationError(
                f"Plan generator returned {resp.status_code}",
                status=resp.status_code,
                body=resp.text,
            )

        try:
            html = (resp.json() or {}).get("html") or ""
        except ValueError as e:
            raise RemoteGenerationError("Plan generator returned invalid JSON",
                                        status=resp.status_code, body=resp.text) from e
        if not html.strip():
            raise RemoteGenerationError("Plan generator returned an empty plan",
                                        status=resp.status_code, body=resp.text)

        html = wrap_plain_text(html)
        extra = fragment_tags(html) - ALLOWED_TAGS
        if extra:
            logger.warning("Generated plan uses tags outside the plan vocabulary: %s", sorted(extra))
        return html


@dataclass
class GenerationOutcome:
    html: str
    method: str
    error: Optional[str] = None
    status: Optional[int] = None

    def to_dict(self):
        out = {"html": self.html, "method": self.method}
        if self.error:
            out["error"] = self.error
        if self.status is not None:
            out["upstreamStatus"] = self.status
        return out


class PlanGenerationService:
    """Generate a plan remotely, falling back to local rendering."""

    def __init__(self, remote=None):
        self.remote = remote or RemotePlanClient()

    def generate(self, project, plan_type, use_ai=None, include=None):
        plan_type = normalize_plan_type(plan_type)
        form = project.snapshot(plan_type)
        settings = project.settings
        instructions = "\n".join(s for s in (settings.custom_instructions, settings.other_requests) if s.strip())
        return self.generate_from_snapshot(
            plan_type, form,
            settings.use_ai if use_ai is None else use_ai,
            instructions, include,
        )

    def generate_from_snapshot(self, plan_type, form, use_ai, custom_instructions="", include=None):
        # Fallback is rendered before the remote call so both use the same snapshot
        fallback = render(plan_type, form, include=include)
        if not use_ai:
            return GenerationOutcome(html=fallback, method="Local")

        try:
            html = self.remote.generate(plan_type, form, custom_instructions)
        except RemoteGenerationError as e:
            logger.warning("Remote %s plan failed (%s), using local plan: %s", plan_type, e.status, e)
            return GenerationOutcome(html=fallback, method="Local", error=str(e), status=e.status)
        return GenerationOutcome(html=html, method="AI")


class GenerationTracker:
    """Tagged generation state: idle, working, done(html) or error(message)."""

    def __init__(self, service):
        self.service = service
        self._lock = threading.Lock()
        self._state = {"state": "idle"}

    def status(self):
        return dict(self._state)

    def _begin(self, plan_type):
        if not self._lock.acquire(blocking=False):
            raise GenerationInProgressError("A plan is already being generated")
        self._state = {"state": "working", "planType": plan_type}

    def _execute(self, project, plan_type, **kwargs):
        try:
            outcome = self.service.generate(project, plan_type, **kwargs)
            self._state = {"state": "done", "planType": plan_type, **outcome.to_dict()}
            return outcome
        except Exception as e:
            logger.exception("Plan generation failed")
            self._state = {"state": "error", "planType": plan_type, "message": str(e)}
            raise
        finally:
            self._lock.release()

    def run(self, project, plan_type, **kwargs):
        """Generate synchronously while holding the in-flight slot."""
        self._begin(plan_type)
        return self._execute(project, plan_type, **kwargs)

    def start(self, project, plan_type, **kwargs):
        """Generate on a background thread from a frozen copy of ``project``."""
        self._begin(plan_type)
        frozen = copy.deepcopy(project)
        thread = threading.Thread(
            target=self._execute_in_background, args=(frozen, plan_type), kwargs=kwargs, daemon=True,
        )
        thread.start()
        return thread

    def _execute_in_background(self, project, plan_type, **kwargs):
        try:
            self._execute(project, plan_type, **kwargs)
        except Exception as e:
            logger.error("Background %s plan generation ended in error: %s", plan_type, e)
