"""
OpenAI plan writer behind ``POST /api/plan``.

Builds the fixed instructional-design prompt, calls chat completions and
returns a single HTML fragment. Upstream HTTP failures keep their status
and raw body so the caller can surface them verbatim.
"""
import json
import logging
import os

from openai import APIStatusError, OpenAI

from ..config import OPENAI_MAX_TOKENS, OPENAI_TEMPERATURE, config
from .plan_renderer import escape_text

logger = logging.getLogger(__name__)

MISSING_KEY_ERROR = "Missing OPENAI_API_KEY"
NO_FILE_TEXT = "(no file text)"

SYSTEM_PROMPT = """You are an instructional designer for K–12. Output MUST be a SINGLE HTML SNIPPET ONLY (no <html> or <body>), starting with <h1>.
Use only <h1-3>, <p>, <ul>, <ol>, and <table>. Use tables for structure. No Markdown.
- Keep language concise; don't invent standard codes.
- Include “Why this matters / transfer” where appropriate.
- Weekly plans: one horizontal chart with columns EXACTLY: Day, Date, Topic, Key Activities, Assessment/Exit, Materials, Notes, Attachments.
- Unit plans: include Essential Questions, Overview, Outcomes (Know/Do), Assignments/Assessments, Vocab (Tier 2 & Tier 3), ELL Supports, Learning Progression, Common Misconceptions, and a Pacing Guide (Week squares)."""


class PlanConfigError(RuntimeError):
    """The service credential is not configured."""


class UpstreamError(RuntimeError):
    """The model API answered with a non-success status."""

    def __init__(self, status, body):
        super().__init__(f"Upstream error {status}")
        self.status = status
        self.body = body


def build_system_prompt(custom_instructions=""):
    prompt = SYSTEM_PROMPT
    if custom_instructions and custom_instructions.strip():
        prompt += f"\n- Extra user directives:\n{custom_instructions.strip()}"
    return prompt


def file_snippets(files_text, max_chars=None):
    """Labelled, truncated snippets of attached file text for the prompt."""
    max_chars = max_chars or config.file_text_max_chars
    snippets = [
        f"\n[{f.get('name', '')}]\n{(f.get('text') or '')[:max_chars]}"
        for f in (files_text or [])
        if isinstance(f, dict) and (f.get('text') or '').strip()
    ]
    return "\n\n".join(snippets) or NO_FILE_TEXT


def build_user_prompt(plan_type, form, files_text):
    return (
        f"Plan type: {str(plan_type).upper()}\n"
        f"Form (JSON):\n{json.dumps(form, indent=2, ensure_ascii=False)}\n\n"
        f"filesText (may be empty):\n{file_snippets(files_text)}\n\n"
        "Return ONLY the HTML snippet."
    )


def wrap_plain_text(text):
    """Wrap model output that carries no markup into a minimal fragment."""
    if "<" in text:
        return text
    return f"<h1>Generated Plan</h1><p>{escape_text(text)}</p>"


def create_client():
    """OpenAI client from ``OPENAI_API_KEY``, read at call time."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key or not api_key.strip():
        raise PlanConfigError(MISSING_KEY_ERROR)
    return OpenAI(api_key=api_key)


def write_plan(plan_type, form, files_text=None, custom_instructions="", client=None):
    """Ask the model for a plan fragment.

    Raises:
        PlanConfigError: no API key, raised before any network call.
        UpstreamError: the API returned a non-success status.
    """
    client = client or create_client()
    model = os.getenv("OPENAI_MODEL") or config.openai_model

    try:
        completion = client.chat.completions.create(
            model=model,
            temperature=OPENAI_TEMPERATURE,
            max_tokens=OPENAI_MAX_TOKENS,
            messages=[
                {"role": "system", "content": build_system_prompt(custom_instructions)},
                {"role": "user", "content": build_user_prompt(plan_type, form, files_text)},
            ],
        )
    except APIStatusError as e:
        body = e.response.text if e.response is not None else ""
        logger.error("OpenAI API error %s: %s", e.status_code, body[:200])
        raise UpstreamError(e.status_code, body or "OpenAI API error") from e

    html = (completion.choices[0].message.content or "") if completion.choices else ""
    return wrap_plain_text(html)
