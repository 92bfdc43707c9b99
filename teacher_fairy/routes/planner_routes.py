"""
Planner routes for Teacher Fairy.

Project state, standards selection, plan rendering / generation and file
attachments. Every write loads the whole state, changes it and saves it back.
"""
import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from ..config import (
    FRAMEWORKS,
    GRADE_BANDS,
    MATERIALS,
    MAX_WEEK_DAYS,
    OBJECTIVE_STYLES,
    STATES,
    SUBJECTS,
    SUPPORTED_FILE_TYPES,
)
from ..models import DaySlot, PlanFormError, Project, normalize_plan_type
from ..services.file_text import describe_upload
from ..services.plan_generator import GenerationInProgressError
from ..services.plan_renderer import render, resolve_include
from ..services.standards_catalog import (
    StandardsImportError,
    add_custom_standard,
    add_standard,
    build_corpus,
    clear_standards,
    count_standards,
    export_standards,
    import_standards,
    remove_standard,
    suggest,
)

logger = logging.getLogger(__name__)

planner_bp = Blueprint('planner', __name__)


def _store():
    return current_app.config['STATE_STORE']


def _project_response(state):
    return jsonify({
        "project": state.project.to_dict(),
        "standardsCount": count_standards(state.standards_db),
        "drive": state.drive.to_dict(),
    })


# ══════════════════════════════════════════════════════════════
# PROJECT
# ══════════════════════════════════════════════════════════════

@planner_bp.route('/api/options', methods=['GET'])
def get_options():
    """Choice lists for the settings form."""
    return jsonify({
        "states": STATES,
        "subjects": SUBJECTS,
        "gradeBands": GRADE_BANDS,
        "frameworks": FRAMEWORKS,
        "objectiveStyles": OBJECTIVE_STYLES,
        "materials": MATERIALS,
        "maxWeekDays": MAX_WEEK_DAYS,
        "fileTypes": SUPPORTED_FILE_TYPES,
    })


@planner_bp.route('/api/project', methods=['GET'])
def get_project():
    return _project_response(_store().load())


@planner_bp.route('/api/project', methods=['PUT'])
def replace_project():
    """Replace the whole project with the posted value."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Project must be a JSON object"}), 400
    try:
        project = Project.from_dict(data.get("project", data))
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400

    def apply(state):
        state.project = project
    return _project_response(_store().update(apply))


@planner_bp.route('/api/project/reset', methods=['POST'])
def reset_project():
    def apply(state):
        state.project = Project()
    return _project_response(_store().update(apply))


def _set_path(doc, path, value):
    """Set ``value`` at a dotted path like ``weekly.days.2.topic``."""
    parts = [p for p in str(path or "").split(".") if p]
    if not parts:
        raise PlanFormError("Missing field path")
    target = doc
    for i, part in enumerate(parts):
        last = i == len(parts) - 1
        if isinstance(target, list):
            if not part.isdigit():
                raise PlanFormError(f"Expected a list index in {path!r}, got {part!r}")
            index = int(part)
            if index >= max(len(target) + 1, MAX_WEEK_DAYS):
                raise PlanFormError(f"Index {index} out of range in {path!r}")
            while len(target) <= index:
                target.append({})
            if last:
                target[index] = value
            else:
                target = target[index]
        elif isinstance(target, dict):
            # Freshly padded list items start empty
            if target and part not in target:
                raise PlanFormError(f"Unknown field {path!r}")
            if last:
                target[part] = value
            else:
                target = target[part]
        else:
            raise PlanFormError(f"Unknown field {path!r}")


@planner_bp.route('/api/project/field', methods=['PATCH'])
def update_project_field():
    """Change one field: ``{"path": "daily.topic", "value": "..."}``."""
    data = request.get_json(silent=True) or {}
    path = data.get("path")
    state = _store().load()
    doc = state.project.to_dict()
    try:
        _set_path(doc, path, data.get("value"))
        state.project = Project.from_dict(doc)
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400
    _store().save(state)
    return _project_response(state)


# ══════════════════════════════════════════════════════════════
# STANDARDS
# ══════════════════════════════════════════════════════════════

@planner_bp.route('/api/standards/suggest', methods=['POST'])
def suggest_standards():
    """Suggest standards from the project's topics and an optional search."""
    data = request.get_json(silent=True) or {}
    state = _store().load()
    settings = state.project.settings

    search = data.get("searchTerm")
    if search is not None and search != settings.standards_search:
        settings.standards_search = str(search)
        _store().save(state)

    suggestions = suggest(
        settings.state, settings.subject, settings.grade_band,
        corpus=build_corpus(state.project),
        search_term=settings.standards_search,
        standards_db=state.standards_db,
    )
    return jsonify({"suggestions": suggestions, "selected": state.project.selected_standards})


def _change_selection(change, *args):
    def apply(state):
        state.project.selected_standards = change(state.project.selected_standards, *args)
    state = _store().update(apply)
    return jsonify({"selected": state.project.selected_standards})


@planner_bp.route('/api/standards/select', methods=['POST'])
def select_standard():
    label = (request.get_json(silent=True) or {}).get("label", "")
    if not str(label).strip():
        return jsonify({"error": "Missing label"}), 400
    return _change_selection(add_standard, str(label))


@planner_bp.route('/api/standards/deselect', methods=['POST'])
def deselect_standard():
    label = (request.get_json(silent=True) or {}).get("label", "")
    return _change_selection(remove_standard, str(label))


@planner_bp.route('/api/standards/custom', methods=['POST'])
def add_custom():
    text = (request.get_json(silent=True) or {}).get("text", "")
    if not str(text).strip():
        return jsonify({"error": "Missing text"}), 400
    return _change_selection(add_custom_standard, str(text))


@planner_bp.route('/api/standards/clear', methods=['POST'])
def clear_selection():
    return _change_selection(clear_standards)


@planner_bp.route('/api/standards/import', methods=['POST'])
def import_standards_file():
    """Replace the imported catalog with an uploaded or posted JSON document."""
    if 'file' in request.files:
        raw = request.files['file'].read()
    else:
        raw = request.get_data()

    try:
        standards_db = import_standards(raw)
    except StandardsImportError as e:
        logger.warning("Standards import rejected: %s", e)
        return jsonify({"error": str(e)}), 422

    def apply(state):
        state.standards_db = standards_db
    state = _store().update(apply)
    return jsonify({"status": "imported", "count": count_standards(state.standards_db),
                    "keys": sorted(state.standards_db)})


@planner_bp.route('/api/standards/export', methods=['GET'])
def export_standards_file():
    body = export_standards(_store().load().standards_db).encode('utf-8')
    return send_file(io.BytesIO(body), mimetype='application/json',
                     as_attachment=True, download_name='teacher_fairy_standards.json')


@planner_bp.route('/api/standards/count', methods=['GET'])
def standards_count():
    return jsonify({"count": count_standards(_store().load().standards_db)})


# ══════════════════════════════════════════════════════════════
# PLANS
# ══════════════════════════════════════════════════════════════

@planner_bp.route('/api/render-plan', methods=['POST'])
def render_plan():
    """Render the stored form locally, without any remote call."""
    data = request.get_json(silent=True) or {}
    try:
        plan_type = normalize_plan_type(data.get("planType"))
        form = _store().load().project.snapshot(plan_type)
        html = render(plan_type, form, include=data.get("include"))
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"html": html, "method": "Local"})


@planner_bp.route('/api/generate-plan', methods=['POST'])
def generate_plan():
    """Generate a plan, falling back to the local renderer on failure."""
    data = request.get_json(silent=True) or {}
    tracker = current_app.config['GENERATION_TRACKER']
    try:
        plan_type = normalize_plan_type(data.get("planType"))
        outcome = tracker.run(_store().load().project, plan_type,
                              use_ai=data.get("useAi"), include=data.get("include"))
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400
    except GenerationInProgressError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(outcome.to_dict())


@planner_bp.route('/api/generate-plan/start', methods=['POST'])
def start_generation():
    data = request.get_json(silent=True) or {}
    tracker = current_app.config['GENERATION_TRACKER']
    try:
        plan_type = normalize_plan_type(data.get("planType"))
        resolve_include(plan_type, data.get("include"))
        tracker.start(_store().load().project, plan_type,
                      use_ai=data.get("useAi"), include=data.get("include"))
    except PlanFormError as e:
        return jsonify({"error": str(e)}), 400
    except GenerationInProgressError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(tracker.status()), 202


@planner_bp.route('/api/generate-plan/status', methods=['GET'])
def generation_status():
    return jsonify(current_app.config['GENERATION_TRACKER'].status())


# ══════════════════════════════════════════════════════════════
# FILES
# ══════════════════════════════════════════════════════════════

@planner_bp.route('/api/upload-file', methods=['POST'])
def upload_file():
    """Attach a file to a form, or to one day of the weekly plan.

    Form fields: ``planType`` and optional ``dayIndex`` (weekly only).
    Only the extracted text is kept.
    """
    if 'file' not in request.files:
        return jsonify({"error": "No file provided"}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({"error": "No file selected"}), 400

    day_index = request.form.get('dayIndex')
    try:
        plan_type = normalize_plan_type(request.form.get('planType'))
        if day_index not in (None, ''):
            if plan_type != "weekly":
                raise PlanFormError("dayIndex only applies to weekly plans")
            day_index = int(day_index)
            if not 0 <= day_index < MAX_WEEK_DAYS:
                raise PlanFormError(f"dayIndex must be between 0 and {MAX_WEEK_DAYS - 1}")
        else:
            day_index = None
    except (PlanFormError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    descriptor = describe_upload(file.filename, file.read())

    def apply(state):
        form = state.project.form(plan_type)
        if day_index is None:
            form.files.append(descriptor)
            return
        while len(form.days) <= day_index:
            form.days.append(DaySlot())
        form.days[day_index].files.append(descriptor)
    _store().update(apply)

    logger.info("Attached %s (%d bytes, text=%s) to %s plan",
                descriptor.name, descriptor.size, descriptor.text is not None, plan_type)
    return jsonify({"status": "attached", "file": descriptor.to_dict()})
