"""
Export routes: word-processor downloads and clipboard payloads for a plan.

Each route takes either the fragment already shown to the teacher
(``{"html": ...}``) or a ``planType`` to render locally from the stored form.
"""
import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from ..models import PlanFormError, normalize_plan_type
from ..services.document_export import (
    DOCX_MIME_TYPE,
    build_docx,
    copy_as_html,
    export_as_document,
    export_filename,
)
from ..services.plan_renderer import plain_text, render

logger = logging.getLogger(__name__)

export_bp = Blueprint('export', __name__)

DEFAULT_NAMES = {
    "daily": "Daily_Lesson_Plan",
    "weekly": "Weekly_Lesson_Plan",
    "unit": "Unit_Plan",
}


def _fragment(data):
    """``(fragment, default_name)`` from a posted fragment or a stored form."""
    html = data.get("html")
    if html:
        return html, "Lesson_Plan"
    plan_type = normalize_plan_type(data.get("planType"))
    form = current_app.config['STATE_STORE'].load().project.snapshot(plan_type)
    return render(plan_type, form, include=data.get("include")), DEFAULT_NAMES[plan_type]


@export_bp.route('/api/export-plan', methods=['POST'])
def export_plan():
    """Download the plan as a ``.doc`` file."""
    data = request.get_json(silent=True) or {}
    try:
        fragment, default_name = _fragment(data)
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400

    body, filename, mimetype = export_as_document(
        fragment, data.get("filename") or default_name, data.get("title"))
    logger.info("Exported %s (%d bytes)", filename, len(body))
    return send_file(io.BytesIO(body), mimetype=mimetype, as_attachment=True, download_name=filename)


@export_bp.route('/api/export-plan-docx', methods=['POST'])
def export_plan_docx():
    """Download the plan as a ``.docx`` file."""
    data = request.get_json(silent=True) or {}
    try:
        fragment, default_name = _fragment(data)
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400

    filename = export_filename(data.get("filename") or default_name, extension=".docx")
    try:
        body = build_docx(fragment, title=data.get("title") or filename[:-5])
    except Exception as e:
        logger.exception("Could not build %s", filename)
        return jsonify({"error": f"Could not build document: {e}"}), 500
    return send_file(io.BytesIO(body), mimetype=DOCX_MIME_TYPE, as_attachment=True, download_name=filename)


@export_bp.route('/api/copy-plan', methods=['POST'])
def copy_plan():
    """Raw fragment plus plain text for the browser clipboard.

    When the app has a ``CLIPBOARD_WRITER`` (a local desktop clipboard), the
    fragment is also written there and the outcome reported under
    ``clipboard``.
    """
    data = request.get_json(silent=True) or {}
    try:
        fragment, _ = _fragment(data)
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400

    payload = {"html": fragment, "text": plain_text(fragment), "mimeType": "text/html"}
    writer = current_app.config.get('CLIPBOARD_WRITER')
    if writer is not None:
        payload["clipboard"] = copy_as_html(fragment, writer)
    return jsonify(payload)
