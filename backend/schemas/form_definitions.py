# schemas/form_definitions.py
# ============================================================================
# ADMISSIONS LEAD QUALIFIER - FORM SCHEMAS
# ============================================================================
# Purpose: Type-safe answer fragments, the accumulated answer set and the
# immutable flow state passed between the flow controller and its callers.
#
# WIRE FORMAT:
# - Python attributes are snake_case
# - Serialised payloads use camelCase aliases (studentFirstName, ...)
# ============================================================================

from typing import Dict, Any, List, Optional, Literal
from datetime import datetime
from enum import Enum
import time
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============================================================================
# SECTION 1: ENUMS
# ============================================================================

class CurrentGrade(str, Enum):
    GRADE_7_BELOW = "7_below"
    GRADE_8 = "8"
    GRADE_9 = "9"
    GRADE_10 = "10"
    GRADE_11 = "11"
    GRADE_12 = "12"
    MASTERS = "masters"


class FormFillerType(str, Enum):
    PARENT = "parent"
    STUDENT = "student"


class CurriculumType(str, Enum):
    IB = "IB"
    IGCSE = "IGCSE"
    CBSE = "CBSE"
    ICSE = "ICSE"
    STATE_BOARDS = "State_Boards"
    OTHERS = "Others"


INTERNATIONAL_CURRICULA = {CurriculumType.IB, CurriculumType.IGCSE}


class ScholarshipRequirement(str, Enum):
    SCHOLARSHIP_OPTIONAL = "scholarship_optional"
    PARTIAL_SCHOLARSHIP = "partial_scholarship"
    FULL_SCHOLARSHIP = "full_scholarship"


class TargetUniversityRank(str, Enum):
    TOP_20 = "top_20"
    TOP_50 = "top_50"
    TOP_100 = "top_100"
    ANY_GOOD = "any_good"


class AcademicPerformance(str, Enum):
    TOP_5 = "top_5"
    TOP_10 = "top_10"
    TOP_25 = "top_25"
    OTHERS = "others"


class ApplicationPreparation(str, Enum):
    RESEARCHING_NOW = "researching_now"
    TAKEN_EXAMS_IDENTIFIED_UNIVERSITIES = "taken_exams_identified_universities"
    UNDECIDED_NEED_HELP = "undecided_need_help"


class TargetUniversities(str, Enum):
    TOP_20_50 = "top_20_50"
    TOP_50_100 = "top_50_100"
    PARTNER_UNIVERSITY = "partner_university"
    UNSURE = "unsure"


class SupportLevel(str, Enum):
    PERSONALIZED_GUIDANCE = "personalized_guidance"
    EXPLORING_OPTIONS = "exploring_options"
    SELF_GUIDED = "self_guided"
    PARTNER_UNIVERSITIES = "partner_universities"


class ParentalSupport(str, Enum):
    WOULD_JOIN = "would_join"
    SUPPORTIVE_LIMITED = "supportive_limited"
    HANDLE_INDEPENDENTLY = "handle_independently"
    NOT_DISCUSSED = "not_discussed"


class ParentFundingApproach(str, Enum):
    ACCEPT_LOANS = "accept_loans"
    DEFER_SCHOLARSHIPS = "defer_scholarships"
    AFFORDABLE_ALTERNATIVES = "affordable_alternatives"
    ONLY_FULL_FUNDING = "only_full_funding"


class StudentFundingApproach(str, Enum):
    ACCEPT_COVER_REMAINING = "accept_cover_remaining"
    DEFER_EXTERNAL_SCHOLARSHIPS = "defer_external_scholarships"
    AFFORDABLE_ALTERNATIVES = "affordable_alternatives"
    ONLY_FULL_FUNDING = "only_full_funding"
    NEED_TO_ASK = "need_to_ask"


class LeadCategory(str, Enum):
    """Classification bucket driving downstream counselling handling."""
    BCH = "bch"
    LUM_L1 = "lum-l1"
    LUM_L2 = "lum-l2"
    MASTERS_L1 = "masters-l1"
    MASTERS_L2 = "masters-l2"
    NURTURE = "nurture"
    DROP = "drop"


QUALIFIED_CATEGORIES = {LeadCategory.BCH, LeadCategory.LUM_L1, LeadCategory.LUM_L2}


class FlowStep(str, Enum):
    PERSONAL_DETAILS = "1"
    ACADEMIC_DETAILS = "2"
    EXTENDED_NURTURE = "2.5"
    COUNSELLING = "3"


STEP_PROGRESS = {
    FlowStep.PERSONAL_DETAILS: 25,
    FlowStep.ACADEMIC_DETAILS: 50,
    FlowStep.EXTENDED_NURTURE: 75,
    FlowStep.COUNSELLING: 100,
}


class SubmissionStatus(str, Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    DROPPED = "dropped"


TERMINAL_STATUSES = {SubmissionStatus.SUBMITTED, SubmissionStatus.DROPPED}


class CompletionStatus(str, Enum):
    PARTIAL = "partial"
    COMPLETE = "complete"


class InterstitialKind(str, Enum):
    EVALUATION = "evaluation"
    NURTURE = "nurture"


# ============================================================================
# SECTION 2: STEP FRAGMENTS
# ============================================================================

class WireModel(BaseModel):
    """Base for everything that ends up in the webhook payload."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersonalDetails(WireModel):
    """Step 1: who is applying and how to reach them."""
    current_grade: CurrentGrade
    form_filler_type: FormFillerType
    student_first_name: str
    student_last_name: str
    parent_name: str
    email: str
    phone_number: str
    area_of_residence: str
    whatsapp_consent: bool = True


class AcademicDetails(WireModel):
    """Step 2 for grades 8-12."""
    school_name: str
    curriculum_type: CurriculumType
    academic_performance: AcademicPerformance
    target_university_rank: TargetUniversityRank
    scholarship_requirement: ScholarshipRequirement
    preferred_countries: List[str] = Field(default_factory=list)
    study_abroad_priority: Optional[Literal["main_focus", "backup_plan", "still_exploring"]] = None
    grade_format: Optional[Literal["gpa", "percentage"]] = None
    gpa_value: Optional[str] = None
    percentage_value: Optional[str] = None


class ContactMethods(WireModel):
    call: bool = False
    call_number: Optional[str] = None
    whatsapp: bool = True
    whatsapp_number: Optional[str] = None
    email: bool = True
    email_address: Optional[str] = None


class MastersAcademicDetails(WireModel):
    """Step 2 for masters applicants."""
    school_name: str
    intake: Literal["aug_sept_2025", "jan_aug_2026", "jan_aug_2027", "other"]
    intake_other: Optional[str] = None
    graduation_status: Literal["2025", "2026", "2027", "others", "graduated"]
    graduation_year: Optional[str] = None
    work_experience: Literal["0_years", "1_2_years", "3_5_years", "6_plus_years"]
    grade_format: Literal["gpa", "percentage"]
    gpa_value: Optional[str] = None
    percentage_value: Optional[str] = None
    entrance_exam: Literal["gre", "gmat", "planning", "not_required"]
    exam_score: Optional[str] = None
    field_of_study: str
    application_preparation: ApplicationPreparation
    target_universities: TargetUniversities
    support_level: SupportLevel
    scholarship_requirement: ScholarshipRequirement
    contact_methods: ContactMethods = Field(default_factory=ContactMethods)


REGULAR_TRACK_FIELDS = frozenset(AcademicDetails.model_fields)
MASTERS_TRACK_FIELDS = frozenset(MastersAcademicDetails.model_fields)
LATER_STEP_FIELDS = frozenset({"extended_nurture", "counselling"})


class ExtendedNurtureAnswers(WireModel):
    """
    Step 2.5 supplementary questionnaire.

    partial_funding_approach holds a ParentFundingApproach value for parents
    and a StudentFundingApproach value for students; parental_support is
    only asked of students.
    """
    strong_profile_intent: str
    partial_funding_approach: str
    parental_support: Optional[ParentalSupport] = None


class CounsellingSelection(WireModel):
    """Step 3 output of the embedded scheduling widget."""
    selected_date: Optional[str] = None
    selected_slot: Optional[str] = None

    @property
    def slot_picked(self) -> bool:
        return bool(self.selected_date and self.selected_slot)


# ============================================================================
# SECTION 3: ANSWER SET
# ============================================================================

class AnswerSet(WireModel):
    """
    Accumulated answers for one session.

    Grows one fragment at a time via merged(). Revisiting a step replaces
    that step's answers and drops the later answers they invalidate.
    """
    # Step 1
    current_grade: Optional[CurrentGrade] = None
    form_filler_type: Optional[FormFillerType] = None
    student_first_name: Optional[str] = None
    student_last_name: Optional[str] = None
    parent_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    area_of_residence: Optional[str] = None
    whatsapp_consent: Optional[bool] = None

    # Step 2 (shared + regular track)
    school_name: Optional[str] = None
    curriculum_type: Optional[CurriculumType] = None
    academic_performance: Optional[AcademicPerformance] = None
    target_university_rank: Optional[TargetUniversityRank] = None
    scholarship_requirement: Optional[ScholarshipRequirement] = None
    preferred_countries: Optional[List[str]] = None
    study_abroad_priority: Optional[str] = None
    grade_format: Optional[str] = None
    gpa_value: Optional[str] = None
    percentage_value: Optional[str] = None

    # Step 2 (masters track)
    intake: Optional[str] = None
    intake_other: Optional[str] = None
    graduation_status: Optional[str] = None
    graduation_year: Optional[str] = None
    work_experience: Optional[str] = None
    entrance_exam: Optional[str] = None
    exam_score: Optional[str] = None
    field_of_study: Optional[str] = None
    application_preparation: Optional[ApplicationPreparation] = None
    target_universities: Optional[TargetUniversities] = None
    support_level: Optional[SupportLevel] = None
    contact_methods: Optional[ContactMethods] = None

    # Step 2.5 / Step 3
    extended_nurture: Optional[ExtendedNurtureAnswers] = None
    counselling: Optional[CounsellingSelection] = None

    def merged(self, fragment: BaseModel) -> "AnswerSet":
        """
        Return a new answer set with the fragment's fields applied.

        A step 2 fragment discards the other track's step 2 answers and
        everything answered after step 2. A step 1 fragment that switches
        between the regular and masters track discards all step 2 answers.
        """
        if isinstance(fragment, ExtendedNurtureAnswers):
            return self.model_copy(update={"extended_nurture": fragment})
        if isinstance(fragment, CounsellingSelection):
            return self.model_copy(update={"counselling": fragment})

        update = {name: getattr(fragment, name) for name in type(fragment).model_fields}

        if isinstance(fragment, (AcademicDetails, MastersAcademicDetails)):
            other_track = (
                MASTERS_TRACK_FIELDS if isinstance(fragment, AcademicDetails) else REGULAR_TRACK_FIELDS
            )
            update.update(dict.fromkeys(other_track - set(update), None))
            update.update(dict.fromkeys(LATER_STEP_FIELDS, None))
        elif isinstance(fragment, PersonalDetails) and self.current_grade is not None:
            if (fragment.current_grade == CurrentGrade.MASTERS) != self.is_masters:
                stale = REGULAR_TRACK_FIELDS | MASTERS_TRACK_FIELDS | LATER_STEP_FIELDS
                update.update(dict.fromkeys(stale, None))

        return self.model_copy(update=update)

    @property
    def is_masters(self) -> bool:
        return self.current_grade == CurrentGrade.MASTERS

    @property
    def is_parent(self) -> bool:
        return self.form_filler_type == FormFillerType.PARENT

    @property
    def has_international_curriculum(self) -> bool:
        return self.curriculum_type in INTERNATIONAL_CURRICULA


# ============================================================================
# SECTION 4: FLOW STATE
# ============================================================================

class FlowState(BaseModel):
    """
    Immutable snapshot of one qualification session.

    The flow controller never mutates a FlowState; every transition
    returns a fresh copy.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    current_step: FlowStep = FlowStep.PERSONAL_DETAILS
    answers: AnswerSet = Field(default_factory=AnswerSet)
    submission_status: SubmissionStatus = SubmissionStatus.IDLE
    pending_category: Optional[LeadCategory] = None

    # Set while an interstitial is running
    interstitial: Optional[InterstitialKind] = None
    next_step: Optional[FlowStep] = None

    started_at: float = Field(default_factory=time.time)
    triggered_events: List[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.submission_status in TERMINAL_STATUSES

    @property
    def is_busy(self) -> bool:
        return self.submission_status in {SubmissionStatus.EVALUATING, SubmissionStatus.SUBMITTING}

    @property
    def progress_percent(self) -> int:
        return STEP_PROGRESS[self.current_step]

    def evolve(self, **changes: Any) -> "FlowState":
        return self.model_copy(update=changes)

    def completion_message(self) -> Optional[str]:
        """Thank-you copy shown once the session has terminated."""
        if not self.is_terminal:
            return None

        answers = self.answers
        if answers.current_grade == CurrentGrade.GRADE_7_BELOW:
            return (
                "We appreciate you taking the time to share your profile with us. "
                "Our admissions team shall get in touch."
            )
        if self.pending_category == LeadCategory.NURTURE:
            return (
                "Thank you for providing more details about your situation. Our admissions "
                "team will review your profile and reach out within 48 hours to discuss "
                "potential pathways that match your specific needs and requirements."
            )
        if answers.counselling and answers.counselling.slot_picked:
            return (
                f"We've scheduled your counselling session for {answers.counselling.selected_date} "
                f"at {answers.counselling.selected_slot}. Our team will contact you soon to confirm."
            )
        return (
            "We appreciate you taking the time to share your profile with us. "
            "Our admissions team will reach out to you within the next 24 hours."
        )


# ============================================================================
# SECTION 5: STEP RESULTS
# ============================================================================

class InterstitialStage(BaseModel):
    message: str
    duration_seconds: float = Field(ge=0.0)


class InterstitialPlan(BaseModel):
    """Staged 'evaluating' screen followed by a single transition."""
    kind: InterstitialKind
    target_step: FlowStep
    stages: List[InterstitialStage]

    @property
    def total_seconds(self) -> float:
        return sum(stage.duration_seconds for stage in self.stages)


class StepResult(BaseModel):
    """Outcome of feeding one step's answers to the flow controller."""
    state: FlowState
    field_errors: Dict[str, List[str]] = Field(default_factory=dict)
    error_message: Optional[str] = None
    interstitial: Optional[InterstitialPlan] = None

    @property
    def ok(self) -> bool:
        return not self.field_errors and self.error_message is None


__all__ = [
    # Enums
    "CurrentGrade",
    "FormFillerType",
    "CurriculumType",
    "ScholarshipRequirement",
    "TargetUniversityRank",
    "AcademicPerformance",
    "ApplicationPreparation",
    "TargetUniversities",
    "SupportLevel",
    "ParentalSupport",
    "ParentFundingApproach",
    "StudentFundingApproach",
    "LeadCategory",
    "FlowStep",
    "SubmissionStatus",
    "CompletionStatus",
    "InterstitialKind",
    # Constants
    "INTERNATIONAL_CURRICULA",
    "QUALIFIED_CATEGORIES",
    "STEP_PROGRESS",
    "TERMINAL_STATUSES",
    # Fragments
    "PersonalDetails",
    "AcademicDetails",
    "ContactMethods",
    "MastersAcademicDetails",
    "ExtendedNurtureAnswers",
    "CounsellingSelection",
    # State
    "AnswerSet",
    "FlowState",
    "InterstitialStage",
    "InterstitialPlan",
    "StepResult",
]
