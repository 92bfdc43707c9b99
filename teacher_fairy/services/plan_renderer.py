"""
Local Plan Renderer
===================

Deterministic template rendering of a plan form into a constrained HTML
fragment: headings, paragraphs, lists and tables only, always starting with
an ``<h1>``. The same fragment feeds the in-browser preview, the .doc
download and the .docx export, and is the fallback whenever the remote
generator is unavailable.

Two shapes are treated differently:

- Row/column tables have a fixed shape. Every enabled row is emitted; an
  empty value becomes a bracketed placeholder such as ``[grade]``.
- List blocks (essential questions, vocabulary, ...) disappear entirely
  when the list is empty.

Every piece of user text passes through ``escape_text`` before insertion.
"""
import html

from bs4 import BeautifulSoup

from ..models import (
    DailyPlanForm,
    PlanFormError,
    UnitPlanForm,
    WeeklyPlanForm,
    normalize_plan_type,
    plan_form_from_dict,
)

ALLOWED_TAGS = frozenset(["h1", "h2", "h3", "p", "ul", "ol", "li", "table", "tr", "th", "td", "br"])

# Column order is a compatibility contract with word-processor import
WEEKLY_DAY_COLUMNS = (
    "Day", "Date", "Topic", "Key Activities", "Assessment/Exit", "Materials", "Notes", "Attachments",
)

STANDARDS_PLACEHOLDER = "[mapped]"

# (key, label) in default display order; the key doubles as placeholder text
DAILY_DETAIL_ROWS = (
    ("date", "Date"),
    ("grade", "Grade"),
    ("subject", "Subject"),
    ("standards", "Standards"),
)
DAILY_ROWS = (
    ("topic", "Topic"),
    ("criteria", "Success Criteria"),
    ("objective", "Objective"),
    ("activity", "Activity"),
    ("checks_for_understanding", "Checks for Understanding"),
    ("differentiation", "Differentiation"),
    ("accommodations", "Accommodations"),
    ("materials", "Materials"),
    ("interventions", "Interventions"),
    ("exemplar", "Exemplar"),
    ("attachments", "Attachments"),
)
WEEKLY_HEADER_ROWS = (
    ("week_of", "Week Of"),
    ("grade", "Grade"),
    ("subject", "Subject"),
    ("topic", "Unit / Theme"),
    ("standards", "Standards"),
    ("objectives", "Weekly Objectives"),
    ("materials", "Materials"),
    ("notes", "Notes"),
)
UNIT_HEADER_ROWS = (
    ("title", "Unit Title"),
    ("subject", "Subject"),
    ("grade_band", "Grade Band"),
    ("framework", "Framework"),
    ("length", "Length of Time"),
    ("standards", "Standards"),
)
UNIT_CORE_ROWS = (
    ("overview", "Overview"),
    ("assessments", "Assignments/Assessments"),
    ("evidence", "Evidence of Learning"),
)
UNIT_CYCLE_ROWS = (
    ("strategies", "Strategies & Activities"),
    ("cross_content", "Cross-Content Links"),
)
PACING_ROWS = (
    ("objective", "Objective"),
    ("common_errors", "Common Errors"),
    ("notes", "Notes"),
)


def default_include(plan_type):
    """Ordered ``[(field_key, enabled)]`` row configuration for a plan type."""
    rows = {
        "daily": DAILY_DETAIL_ROWS + DAILY_ROWS,
        "weekly": WEEKLY_HEADER_ROWS,
        "unit": UNIT_HEADER_ROWS + UNIT_CORE_ROWS + UNIT_CYCLE_ROWS,
    }[normalize_plan_type(plan_type)]
    return [(key, True) for key, _ in rows]


def resolve_include(plan_type, include=None):
    """Merge a caller's include configuration over the defaults.

    ``include`` is either an ordered list of ``(key, enabled)`` pairs, whose
    order wins, or a ``{key: enabled}`` mapping that only toggles. Unknown
    keys are ignored; keys the caller leaves out stay enabled.
    """
    defaults = default_include(plan_type)
    known = [key for key, _ in defaults]
    if not include:
        return defaults
    if isinstance(include, dict):
        return [(key, bool(include.get(key, True))) for key in known]

    if not isinstance(include, (list, tuple)):
        raise PlanFormError("include must be a list of [key, enabled] pairs or an object")

    ordered = []
    seen = set()
    for item in include:
        if not isinstance(item, (list, tuple)) or len(item) != 2 or not isinstance(item[0], str):
            raise PlanFormError(f"Malformed include entry: {item!r}")
        key, enabled = item
        if key in known and key not in seen:
            ordered.append((key, bool(enabled)))
            seen.add(key)
    ordered.extend((key, True) for key in known if key not in seen)
    return ordered


# ══════════════════════════════════════════════════════════════
# TEXT HELPERS
# ══════════════════════════════════════════════════════════════

def escape_text(value):
    """HTML-escape user text, then turn newlines into ``<br/>``."""
    text = "" if value is None else str(value)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return html.escape(text, quote=True).replace("\n", "<br/>")


def placeholder(key):
    return f"[{key}]"


def fragment_tags(fragment):
    """Set of tag names used in a fragment."""
    soup = BeautifulSoup(fragment or "", "html.parser")
    return {tag.name for tag in soup.find_all(True)}


def plain_text(fragment):
    """Text of a fragment with entities unescaped; ``<br/>`` becomes a newline."""
    soup = BeautifulSoup(fragment or "", "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    return soup.get_text()


def _standards_cell(standards):
    if not standards:
        return STANDARDS_PLACEHOLDER
    return "<br/>".join(escape_text(s) for s in standards)


def _attachments_cell(files, key="attachments"):
    names = [f.name for f in files if f.name]
    return escape_text(", ".join(names)) if names else placeholder(key)


def _cell(value, key):
    if value is None or not str(value).strip():
        return placeholder(key)
    return escape_text(value)


def _row_table(rows):
    """Two-column label/value table from ``[(label, cell_html)]``."""
    body = "".join(f"<tr><th>{html.escape(label)}</th><td>{cell}</td></tr>" for label, cell in rows)
    return f"<table>{body}</table>"


def list_block(items, heading):
    """``<h3>`` + ``<ul>`` for a list field; empty lists render nothing."""
    items = [i for i in (items or []) if str(i).strip()]
    if not items:
        return ""
    lis = "".join(f"<li>{escape_text(i)}</li>" for i in items)
    return f"<h3>{html.escape(heading)}</h3><ul>{lis}</ul>"


def _emit_rows(row_defs, include, values):
    """Rows enabled by ``include`` in its order, with cells from ``values``."""
    labels = dict(row_defs)
    return [(labels[key], values[key]) for key, enabled in include if enabled and key in labels]


def _heading(title, topic):
    if topic and topic.strip():
        return f"<h1>{html.escape(title)}: {escape_text(topic.strip())}</h1>"
    return f"<h1>{html.escape(title)}</h1>"


# ══════════════════════════════════════════════════════════════
# PLAN TYPES
# ══════════════════════════════════════════════════════════════

def render_daily(form, standards, include):
    values = {
        "date": _cell(form.date, "date"),
        "grade": _cell(form.grade, "grade"),
        "subject": _cell(form.subject, "subject"),
        "standards": _standards_cell(standards),
        "topic": _cell(form.topic, "topic"),
        "criteria": _cell(form.criteria, "criteria"),
        "objective": _cell(form.objective, "objective"),
        "activity": _cell(form.activity, "activity"),
        "checks_for_understanding": _cell(form.checks_for_understanding, "checks for understanding"),
        "differentiation": _cell(form.differentiation, "differentiation"),
        "accommodations": _cell(form.accommodations, "accommodations"),
        "materials": _cell(form.materials, "materials"),
        "interventions": _cell(form.interventions, "interventions"),
        "exemplar": _cell(form.exemplar, "exemplar"),
        "attachments": _attachments_cell(form.files),
    }
    parts = [_heading("Daily Lesson Plan", form.topic)]
    details = _emit_rows(DAILY_DETAIL_ROWS, include, values)
    if details:
        parts.append(_row_table(details))
    rows = _emit_rows(DAILY_ROWS, include, values)
    if rows:
        parts.append("<h2>Lesson</h2>")
        parts.append(_row_table(rows))
    parts.append(list_block(form.notes.splitlines(), "Teacher Notes"))
    return "".join(parts)


def _day_table(index, day):
    header = "".join(f"<th>{html.escape(col)}</th>" for col in WEEKLY_DAY_COLUMNS)
    cells = [
        html.escape(f"Day {index}"),
        _cell(day.date, "date"),
        _cell(day.topic, "topic"),
        _cell(day.activities, "activities"),
        _cell(day.assessment, "assessment"),
        _cell(day.materials, "materials"),
        _cell(day.notes, "notes"),
        _attachments_cell(day.files),
    ]
    row = "".join(f"<td>{c}</td>" for c in cells)
    return f"<h2>Day {index}</h2><table><tr>{header}</tr><tr>{row}</tr></table>"


def render_weekly(form, standards, include):
    values = {
        "week_of": _cell(form.week_of, "week"),
        "grade": _cell(form.grade, "grade"),
        "subject": _cell(form.subject, "subject"),
        "topic": _cell(form.topic, "topic"),
        "standards": _standards_cell(standards),
        "objectives": _cell(form.objectives, "objectives"),
        "materials": _cell(form.materials, "materials"),
        "notes": _cell(form.notes, "notes"),
    }
    parts = [_heading("Weekly Lesson Plan", form.topic)]
    header = _emit_rows(WEEKLY_HEADER_ROWS, include, values)
    if header:
        parts.append(_row_table(header))
    for i, day in enumerate(form.days, 1):
        parts.append(_day_table(i, day))
    return "".join(parts)


def render_unit(form, standards, include):
    values = {
        "title": _cell(form.title, "title"),
        "subject": _cell(form.subject, "subject"),
        "grade_band": _cell(form.grade_band, "grade"),
        "framework": _cell(form.framework, "framework"),
        "length": _cell(form.length, "length"),
        "standards": _standards_cell(standards),
        "overview": _cell(form.overview, "overview"),
        "assessments": _cell(form.assessments, "assessments"),
        "evidence": _cell(form.evidence, "evidence"),
        "strategies": _cell(form.strategies, "strategies"),
        "cross_content": _cell(form.cross_content, "cross-content"),
    }
    parts = [_heading("Unit Plan", form.title)]
    header = _emit_rows(UNIT_HEADER_ROWS, include, values)
    if header:
        parts.append(_row_table(header))

    parts.append("<h2>Core Components</h2>")
    core = _emit_rows(UNIT_CORE_ROWS, include, values)
    if core:
        parts.append(_row_table(core))
    parts.append(list_block(form.essential_questions, "Essential Questions"))
    parts.append(list_block(form.know, "Must Know"))
    parts.append(list_block(form.do, "Must Do"))
    parts.append(list_block(form.vocabulary_tier2, "Vocabulary (Tier 2)"))
    parts.append(list_block(form.vocabulary_tier3, "Vocabulary (Tier 3)"))

    parts.append("<h2>Learning Cycle</h2>")
    cycle = _emit_rows(UNIT_CYCLE_ROWS, include, values)
    if cycle:
        parts.append(_row_table(cycle))
    parts.append(list_block(form.ell_supports, "ELL Supports"))
    parts.append(list_block(form.diverse_learners, "Strategies for Diverse Learners"))

    parts.append("<h2>Progression / Misconceptions</h2>")
    parts.append(list_block(form.learning_progression, "Learning Progression"))
    parts.append(list_block(form.misconceptions, "Common Misconceptions"))

    parts.append("<h2>Pacing Guide</h2>")
    if not form.pacing_weeks:
        parts.append(f"<p>{placeholder('pacing')}</p>")
    for i, week in enumerate(form.pacing_weeks, 1):
        title = f"Week {i}: {week.title}" if week.title.strip() else f"Week {i}"
        parts.append(f"<h3>{escape_text(title)}</h3>")
        parts.append(_row_table([
            (label, _cell(getattr(week, key), key.replace("_", " ")))
            for key, label in PACING_ROWS
        ]))
    return "".join(parts)


RENDERERS = {
    "daily": (DailyPlanForm, render_daily),
    "weekly": (WeeklyPlanForm, render_weekly),
    "unit": (UnitPlanForm, render_unit),
}


def render(plan_type, form, selected_standards=None, include=None):
    """Render a plan form into an HTML fragment.

    Args:
        plan_type: "daily", "weekly" or "unit".
        form: The matching form record, or its JSON object.
        selected_standards: ``"code — text"`` labels; defaults to ``form.standards``.
        include: Optional row configuration, see ``resolve_include``.

    Returns:
        HTML fragment beginning with ``<h1>``.
    """
    plan_type = normalize_plan_type(plan_type)
    form_cls, renderer = RENDERERS[plan_type]
    if isinstance(form, dict):
        form = plan_form_from_dict(plan_type, form)
    if not isinstance(form, form_cls):
        raise PlanFormError(f"Expected a {plan_type} form, got {type(form).__name__}")

    standards = form.standards if selected_standards is None else selected_standards
    return renderer(form, list(standards), resolve_include(plan_type, include))
