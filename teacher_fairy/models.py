"""
Form State Model
================

Canonical records for the daily, weekly and unit plan forms and the project
state around them, as pydantic models. All records serialize to the camelCase
JSON shape the browser front end sends (``planType``, ``gradeBand``,
``standardsDB``...).

``from_dict`` is forgiving about shape: missing or null keys fall back to
defaults and unknown keys are ignored, so partially-filled forms and older
saved projects load. Values of the wrong type (a file that is not an object,
a list field holding a number) raise ``PlanFormError``.
"""
import copy
from typing import Annotated, ClassVar, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .config import (
    AUTO_BACKUP_DEFAULT_MINUTES,
    AUTO_BACKUP_MAX_MINUTES,
    AUTO_BACKUP_MIN_MINUTES,
    DEFAULT_JURISDICTION,
    FRAMEWORKS,
    MAX_WEEK_DAYS,
    OBJECTIVE_STYLES,
    STATE_SCHEMA_VERSION,
)

PLAN_TYPES = ("daily", "weekly", "unit")


class PlanFormError(ValueError):
    """Raised for an unknown plan type or a form that breaks its shape."""


def _lines(value):
    """Accept newline-separated text for list fields; drop blank entries."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    if isinstance(value, (list, tuple)):
        return [v for v in value if v is not None and not (isinstance(v, str) and not v.strip())]
    return value


Lines = Annotated[List[str], BeforeValidator(_lines)]


def _validation_message(error):
    first = error.errors()[0]
    where = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid {where}: {first['msg']}" if where else first["msg"]


class _Record(BaseModel):
    """Base for camelCase JSON records."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def null_is_default(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value

    def to_dict(self):
        return self.model_dump(by_alias=True)

    @classmethod
    def from_dict(cls, data):
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise PlanFormError(f"{cls.__name__} must be a JSON object, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise PlanFormError(_validation_message(e)) from e


class UploadedFile(_Record):
    """Descriptor of an attached file; ``text`` is set when it could be read."""
    name: str = ""
    size: int = 0
    text: Optional[str] = None


class DaySlot(_Record):
    date: str = ""
    topic: str = ""
    activities: str = ""
    assessment: str = ""
    materials: str = ""
    notes: str = ""
    files: List[UploadedFile] = Field(default_factory=list)

    def is_blank(self):
        return not (self.date or self.topic)


class PacingWeek(_Record):
    title: str = ""
    objective: str = ""
    common_errors: str = ""
    notes: str = ""


class _PlanForm(_Record):
    plan_type: ClassVar[str] = ""

    def to_dict(self):
        return {"planType": self.plan_type, **super().to_dict()}


class DailyPlanForm(_PlanForm):
    topic: str = ""
    date: str = ""
    grade: str = ""
    subject: str = ""
    criteria: str = ""
    objective: str = ""
    activity: str = ""
    checks_for_understanding: str = ""
    differentiation: str = ""
    accommodations: str = ""
    materials: str = ""
    interventions: str = ""
    exemplar: str = ""
    notes: str = ""
    standards: Lines = Field(default_factory=list)
    files: List[UploadedFile] = Field(default_factory=list)

    plan_type: ClassVar[str] = "daily"


class WeeklyPlanForm(_PlanForm):
    week_of: str = ""
    topic: str = ""
    grade: str = ""
    subject: str = ""
    objectives: str = ""
    materials: str = ""
    notes: str = ""
    standards: Lines = Field(default_factory=list)
    files: List[UploadedFile] = Field(default_factory=list)
    days: List[DaySlot] = Field(default_factory=list, max_length=MAX_WEEK_DAYS)

    plan_type: ClassVar[str] = "weekly"


class UnitPlanForm(_PlanForm):
    title: str = ""
    subject: str = ""
    grade_band: str = ""
    framework: str = ""
    length: str = ""
    overview: str = ""
    essential_questions: Lines = Field(default_factory=list)
    know: Lines = Field(default_factory=list)
    do: Lines = Field(default_factory=list)
    assessments: str = ""
    evidence: str = ""
    vocabulary_tier2: Lines = Field(default_factory=list)
    vocabulary_tier3: Lines = Field(default_factory=list)
    strategies: str = ""
    cross_content: str = ""
    ell_supports: Lines = Field(default_factory=list)
    diverse_learners: Lines = Field(default_factory=list)
    learning_progression: Lines = Field(default_factory=list)
    misconceptions: Lines = Field(default_factory=list)
    materials: str = ""
    notes: str = ""
    pacing_weeks: List[PacingWeek] = Field(default_factory=list)
    standards: Lines = Field(default_factory=list)
    files: List[UploadedFile] = Field(default_factory=list)

    plan_type: ClassVar[str] = "unit"


PLAN_FORMS = {
    "daily": DailyPlanForm,
    "weekly": WeeklyPlanForm,
    "unit": UnitPlanForm,
}


def normalize_plan_type(plan_type):
    key = str(plan_type or "").strip().lower()
    if key not in PLAN_FORMS:
        raise PlanFormError(f"Unknown plan type: {plan_type!r}")
    return key


def plan_form_from_dict(plan_type, data):
    """Build the form record for ``plan_type`` from a JSON object."""
    return PLAN_FORMS[normalize_plan_type(plan_type)].from_dict(data)


class ProjectSettings(_Record):
    state: str = DEFAULT_JURISDICTION
    subject: str = "Social Studies"
    grade_band: str = "6-8"
    framework: str = FRAMEWORKS[0]
    custom_taxonomy: str = ""
    objective_style: str = OBJECTIVE_STYLES[0]
    materials: Lines = Field(default_factory=lambda: ["Curriculum", "DBQ"])
    topics_only: bool = True
    prefilled_objective: str = ""
    other_requests: str = ""
    custom_instructions: str = ""
    use_ai: bool = False
    standards_search: str = ""

    @property
    def taxonomy(self):
        return self.custom_taxonomy.strip() or self.framework


class Project(BaseModel):
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    selected_standards: Lines = Field(default_factory=list)
    daily: DailyPlanForm = Field(default_factory=DailyPlanForm)
    weekly: WeeklyPlanForm = Field(default_factory=WeeklyPlanForm)
    unit: UnitPlanForm = Field(default_factory=UnitPlanForm)

    def form(self, plan_type):
        return getattr(self, normalize_plan_type(plan_type))

    def snapshot(self, plan_type):
        """Independent copy of one plan form carrying the current selection.

        Blank subject / grade / materials / objective / framework fields are
        filled from the project settings so the copy renders on its own.
        """
        form = self.form(plan_type).model_copy(deep=True)
        form.standards = list(self.selected_standards)
        settings = self.settings
        materials = ", ".join(settings.materials)

        form.subject = form.subject or settings.subject
        form.materials = form.materials or materials
        if isinstance(form, UnitPlanForm):
            form.grade_band = form.grade_band or settings.grade_band
            form.framework = form.framework or settings.taxonomy
        else:
            form.grade = form.grade or settings.grade_band
        if isinstance(form, DailyPlanForm):
            form.objective = form.objective or settings.prefilled_objective
        return form

    def to_dict(self):
        return {
            **self.settings.to_dict(),
            "standardsSelected": list(self.selected_standards),
            "daily": self.daily.to_dict(),
            "weekly": self.weekly.to_dict(),
            "unit": self.unit.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise PlanFormError("Project must be a JSON object")
        try:
            return cls(
                settings=ProjectSettings.from_dict(data),
                selected_standards=data.get("standardsSelected"),
                daily=DailyPlanForm.from_dict(data.get("daily")),
                weekly=WeeklyPlanForm.from_dict(data.get("weekly")),
                unit=UnitPlanForm.from_dict(data.get("unit")),
            )
        except ValidationError as e:
            raise PlanFormError(_validation_message(e)) from e


def clamp_backup_minutes(value):
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        minutes = AUTO_BACKUP_DEFAULT_MINUTES
    return min(max(minutes, AUTO_BACKUP_MIN_MINUTES), AUTO_BACKUP_MAX_MINUTES)


class DriveSettings(_Record):
    folder_id: str = ""
    folder_name: str = ""
    auto_backup: bool = False
    auto_backup_minutes: int = AUTO_BACKUP_DEFAULT_MINUTES
    last_backup_ts: int = 0

    @field_validator("auto_backup_minutes", mode="before")
    @classmethod
    def clamp_minutes(cls, value):
        return clamp_backup_minutes(value)


class AppState(BaseModel):
    """Everything persisted locally: project, imported standards, Drive settings.

    ``standards_db`` holds the keyed catalog document
    (``{"state|subject|gradeBand": [{code, text, tags}]}``).
    """
    project: Project = Field(default_factory=Project)
    standards_db: dict = Field(default_factory=dict)
    drive: DriveSettings = Field(default_factory=DriveSettings)
    schema_version: int = STATE_SCHEMA_VERSION

    def to_dict(self):
        return {
            "schemaVersion": self.schema_version,
            "project": self.project.to_dict(),
            "standardsDB": copy.deepcopy(self.standards_db),
            "drive": self.drive.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise PlanFormError("Saved state must be a JSON object")
        if "schemaVersion" not in data:
            # Unversioned documents are the bare project settings object
            return cls(project=Project.from_dict(data))
        try:
            return cls(
                project=Project.from_dict(data.get("project")),
                standards_db=copy.deepcopy(data.get("standardsDB") or {}),
                drive=DriveSettings.from_dict(data.get("drive")),
                schema_version=data.get("schemaVersion") or STATE_SCHEMA_VERSION,
            )
        except ValidationError as e:
            raise PlanFormError(_validation_message(e)) from e
