"""
Step Validators
===============
Explicit per-step validation for the qualification wizard.

Each *_errors() function inspects raw answer data (snake_case keys, as
posted by the UI) and returns a structured error map
``{field: [message, ...]}``; an empty map means the step is valid.
parse_step() runs the right validator and builds the typed fragment,
raising FormValidationError when anything is wrong.
"""

import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from schemas.form_definitions import (
    AcademicDetails,
    AcademicPerformance,
    AnswerSet,
    ApplicationPreparation,
    CounsellingSelection,
    CurrentGrade,
    CurriculumType,
    ExtendedNurtureAnswers,
    FlowStep,
    FormFillerType,
    MastersAcademicDetails,
    ParentFundingApproach,
    ParentalSupport,
    PersonalDetails,
    ScholarshipRequirement,
    StudentFundingApproach,
    SupportLevel,
    TargetUniversities,
    TargetUniversityRank,
)


ErrorMap = Dict[str, List[str]]

REQUIRED_MESSAGE = "Please answer this question"

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^[0-9]{10}$")
NUMERIC_PATTERN = re.compile(r"^\d*\.?\d+$")

INTAKES = ("aug_sept_2025", "jan_aug_2026", "jan_aug_2027", "other")
GRADUATION_STATUSES = ("2025", "2026", "2027", "others", "graduated")
WORK_EXPERIENCE = ("0_years", "1_2_years", "3_5_years", "6_plus_years")
GRADE_FORMATS = ("gpa", "percentage")
ENTRANCE_EXAMS = ("gre", "gmat", "planning", "not_required")
STUDY_ABROAD_PRIORITIES = ("main_focus", "backup_plan", "still_exploring")


class FormValidationError(Exception):
    """Raised when a step's answers fail validation; carries the error map."""

    def __init__(self, errors: ErrorMap):
        super().__init__("Form validation failed")
        self.errors = errors

    def messages(self) -> List[str]:
        return [message for field_messages in self.errors.values() for message in field_messages]


# =========================================================================
# FIELD CHECKS
# =========================================================================

def _add(errors: ErrorMap, field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


def _text(data: Mapping[str, Any], field: str) -> str:
    value = data.get(field)
    return value.strip() if isinstance(value, str) else ""


def _require_text(
    errors: ErrorMap,
    data: Mapping[str, Any],
    field: str,
    min_length: int = 1,
    message: str = REQUIRED_MESSAGE,
) -> None:
    if len(_text(data, field)) < min_length:
        _add(errors, field, message)


def _choice_values(choices: Any) -> Iterable[str]:
    if isinstance(choices, type) and issubclass(choices, Enum):
        return [member.value for member in choices]
    return choices


def _require_choice(errors: ErrorMap, data: Mapping[str, Any], field: str, choices: Any) -> None:
    value = data.get(field)
    if isinstance(value, Enum):
        value = value.value
    if value not in _choice_values(choices):
        _add(errors, field, REQUIRED_MESSAGE)


def _optional_choice(errors: ErrorMap, data: Mapping[str, Any], field: str, choices: Any) -> None:
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        return
    _require_choice(errors, data, field, choices)


def _check_score(errors: ErrorMap, field: str, raw: Any, minimum: float, maximum: float) -> None:
    text = str(raw).strip()
    if not NUMERIC_PATTERN.match(text):
        _add(errors, field, "Please enter a number")
        return
    value = float(text)
    if value < minimum or value > maximum:
        _add(errors, field, f"Please enter a value between {minimum:g} and {maximum:g}")


def _check_grade_format(errors: ErrorMap, data: Mapping[str, Any], required: bool) -> None:
    grade_format = data.get("grade_format")
    if grade_format in (None, "") and not required:
        return
    if grade_format not in GRADE_FORMATS:
        _add(errors, "grade_format", REQUIRED_MESSAGE)
        return

    field = "gpa_value" if grade_format == "gpa" else "percentage_value"
    raw = data.get(field)
    if raw in (None, ""):
        _add(errors, "gpa_value", "Please provide your grade in the selected format")
        return

    if grade_format == "gpa":
        _check_score(errors, field, raw, 1, 10)
    else:
        _check_score(errors, field, raw, 1, 100)


# =========================================================================
# PER-STEP VALIDATORS
# =========================================================================

def personal_details_errors(data: Mapping[str, Any]) -> ErrorMap:
    errors: ErrorMap = {}

    _require_choice(errors, data, "current_grade", CurrentGrade)
    _require_choice(errors, data, "form_filler_type", FormFillerType)
    _require_text(errors, data, "student_first_name", min_length=2)
    _require_text(errors, data, "student_last_name")
    _require_text(errors, data, "parent_name", min_length=2)

    if not EMAIL_PATTERN.match(_text(data, "email")):
        _add(errors, "email", "Please enter a valid email address")
    if not PHONE_PATTERN.match(_text(data, "phone_number")):
        _add(errors, "phone_number", "Please enter a valid 10-digit phone number")

    _require_text(errors, data, "area_of_residence", message="Please enter your area of residence")

    consent = data.get("whatsapp_consent", True)
    if not isinstance(consent, bool):
        _add(errors, "whatsapp_consent", REQUIRED_MESSAGE)

    return errors


def academic_details_errors(data: Mapping[str, Any]) -> ErrorMap:
    errors: ErrorMap = {}

    _require_text(errors, data, "school_name", min_length=2, message="School name is required")
    _require_choice(errors, data, "curriculum_type", CurriculumType)
    _require_choice(errors, data, "academic_performance", AcademicPerformance)
    _require_choice(errors, data, "target_university_rank", TargetUniversityRank)
    _require_choice(errors, data, "scholarship_requirement", ScholarshipRequirement)
    _optional_choice(errors, data, "study_abroad_priority", STUDY_ABROAD_PRIORITIES)

    countries = data.get("preferred_countries")
    if countries is not None and (
        not isinstance(countries, list) or not all(isinstance(c, str) for c in countries)
    ):
        _add(errors, "preferred_countries", "Please select at least one preferred destination")

    _check_grade_format(errors, data, required=False)
    return errors


def masters_details_errors(data: Mapping[str, Any]) -> ErrorMap:
    errors: ErrorMap = {}

    _require_text(errors, data, "school_name", min_length=2, message="University name is required")
    _require_choice(errors, data, "intake", INTAKES)
    _require_choice(errors, data, "graduation_status", GRADUATION_STATUSES)
    _require_choice(errors, data, "work_experience", WORK_EXPERIENCE)
    _require_choice(errors, data, "entrance_exam", ENTRANCE_EXAMS)
    _require_text(errors, data, "field_of_study", message="Field of study is required")
    _require_choice(errors, data, "application_preparation", ApplicationPreparation)
    _require_choice(errors, data, "target_universities", TargetUniversities)
    _require_choice(errors, data, "support_level", SupportLevel)
    _require_choice(errors, data, "scholarship_requirement", ScholarshipRequirement)

    if data.get("intake") == "other":
        _require_text(errors, data, "intake_other")

    _check_grade_format(errors, data, required=True)

    contact = data.get("contact_methods")
    if contact is not None:
        if not isinstance(contact, Mapping):
            _add(errors, "contact", "Please select at least one contact method")
        else:
            if not (contact.get("call") or contact.get("whatsapp", True) or contact.get("email", True)):
                _add(errors, "contact", "Please select at least one contact method")
            address = contact.get("email_address")
            if contact.get("email", True) and address and not EMAIL_PATTERN.match(address):
                _add(errors, "contact", "Please enter a valid email address")

    return errors


def extended_nurture_errors(data: Mapping[str, Any], form_filler_type: Optional[FormFillerType]) -> ErrorMap:
    """Parents answer the funding question; students also answer parental support."""
    errors: ErrorMap = {}

    _require_text(errors, data, "strong_profile_intent")

    if form_filler_type == FormFillerType.STUDENT:
        _require_choice(errors, data, "parental_support", ParentalSupport)
        _require_choice(errors, data, "partial_funding_approach", StudentFundingApproach)
    else:
        _require_choice(errors, data, "partial_funding_approach", ParentFundingApproach)

    return errors


def counselling_errors(data: Mapping[str, Any]) -> ErrorMap:
    errors: ErrorMap = {}
    for field in ("selected_date", "selected_slot"):
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            _add(errors, field, "Please pick a valid counselling slot")
    return errors


# =========================================================================
# DISPATCH
# =========================================================================

def validate_step(step: FlowStep, data: Mapping[str, Any], answers: AnswerSet) -> ErrorMap:
    """Return the error map for a step given the answers collected so far."""
    if step == FlowStep.PERSONAL_DETAILS:
        return personal_details_errors(data)
    if step == FlowStep.ACADEMIC_DETAILS:
        if answers.is_masters:
            return masters_details_errors(data)
        return academic_details_errors(data)
    if step == FlowStep.EXTENDED_NURTURE:
        return extended_nurture_errors(data, answers.form_filler_type)
    return counselling_errors(data)


def _fragment_type(step: FlowStep, answers: AnswerSet) -> Type:
    if step == FlowStep.PERSONAL_DETAILS:
        return PersonalDetails
    if step == FlowStep.ACADEMIC_DETAILS:
        return MastersAcademicDetails if answers.is_masters else AcademicDetails
    if step == FlowStep.EXTENDED_NURTURE:
        return ExtendedNurtureAnswers
    return CounsellingSelection


def parse_step(step: FlowStep, data: Mapping[str, Any], answers: AnswerSet):
    """
    Validate and build the typed fragment for a step.

    Raises:
        FormValidationError: if any field is invalid
    """
    errors = validate_step(step, data, answers)
    if errors:
        raise FormValidationError(errors)

    fragment_type = _fragment_type(step, answers)
    known = {key: value for key, value in data.items() if key in fragment_type.model_fields}
    for key, value in list(known.items()):
        if isinstance(value, str):
            value = value.strip()
            # Blank optional inputs are "not answered"
            if not value and fragment_type.model_fields[key].default is None:
                value = None
            known[key] = value
    return fragment_type(**known)


__all__ = [
    "FormValidationError",
    "ErrorMap",
    "personal_details_errors",
    "academic_details_errors",
    "masters_details_errors",
    "extended_nurture_errors",
    "counselling_errors",
    "validate_step",
    "parse_step",
]
