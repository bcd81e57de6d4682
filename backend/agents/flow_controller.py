"""
Flow Controller - ADMISSIONS QUALIFICATION WIZARD
=================================================
Owns the step-to-step flow of the lead qualification form.

Features:
- Validates each step's answers before anything moves
- Merges answers into an immutable FlowState
- Classifies the lead and picks the next step
- Schedules the evaluation interstitial for qualified leads
- Submits to the registration webhook and terminates the session
- Emits pixel / GA events at every transition

Transitions:
    1   -> dropped        grade 7 or below
    1   -> 2              everyone else
    2   -> submitted      student-filled, spam, or non-qualifying nurture
    2   -> 2.5            nurture, grade 11/12, parent-filled, not spam
    2   -> 3              any non-nurture category (via interstitial)
    2.5 -> submitted      still nurture after re-categorization
    2.5 -> 3              re-categorized into a qualified category
    3   -> submitted      always
"""

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Callable, Mapping

import structlog

from agents.lead_classifier import classify, is_qualified, looks_like_spam
from agents.step_validators import FormValidationError, parse_step
from schemas.form_definitions import (
    CompletionStatus,
    CurrentGrade,
    CurriculumType,
    FlowState,
    FlowStep,
    FormFillerType,
    InterstitialKind,
    LeadCategory,
    StepResult,
    SubmissionStatus,
    AnswerSet,
)
from services.analytics_service import AnalyticsTracker, common_event_properties
from services.submission_service import SubmissionError, build_submission_payload
from tasks.interstitial import DEFAULT_TOTAL_SECONDS, InterstitialRunner, build_plan

# Configure logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)

logger = structlog.get_logger().bind(component="flow_controller")


GENERIC_SUBMISSION_ERROR = "We couldn't submit your details. Please try again."

EXTENDED_NURTURE_GRADES = {CurrentGrade.GRADE_11, CurrentGrade.GRADE_12}

BCH_COUNSELLOR = "Viswanathan"
DEFAULT_COUNSELLOR = "Karthik Lakshman"

PREVIOUS_STEP = {
    FlowStep.ACADEMIC_DETAILS: FlowStep.PERSONAL_DETAILS,
    FlowStep.EXTENDED_NURTURE: FlowStep.ACADEMIC_DETAILS,
}


def counsellor_for(category: LeadCategory) -> str:
    return BCH_COUNSELLOR if category == LeadCategory.BCH else DEFAULT_COUNSELLOR


class FlowTransitionError(RuntimeError):
    """An operation was called on a state that cannot accept it."""


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class FlowConfig:
    """Flow behaviour knobs."""
    interstitial_seconds: float = DEFAULT_TOTAL_SECONDS
    partial_capture: bool = False

    @classmethod
    def from_env(cls) -> "FlowConfig":
        return cls(
            interstitial_seconds=float(
                os.getenv("ADMISSIONS_INTERSTITIAL_SECONDS", str(DEFAULT_TOTAL_SECONDS))
            ),
            partial_capture=os.getenv("ADMISSIONS_PARTIAL_CAPTURE", "false").lower() == "true",
        )


# =============================================================================
# FLOW CONTROLLER
# =============================================================================

class FlowController:
    """
    Drives one qualification session from step 1 to submission.

    Responsibilities:
    1. Reject answers that fail validation (state unchanged)
    2. Merge valid answers and classify the lead
    3. Decide the next step, interstitial or submission
    4. Keep answers intact when the webhook fails so the user can retry
    """

    def __init__(
        self,
        submitter,
        tracker: Optional[AnalyticsTracker] = None,
        config: Optional[FlowConfig] = None,
        runner: Optional[InterstitialRunner] = None,
        clock: Callable[[], float] = time.time,
        on_state_change: Optional[Callable[[FlowState], None]] = None,
    ):
        self.submitter = submitter
        self.tracker = tracker or AnalyticsTracker()
        self.config = config or FlowConfig.from_env()
        self.runner = runner or InterstitialRunner()
        self._clock = clock
        self._on_state_change = on_state_change

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    def start(self, session_id: Optional[str] = None) -> FlowState:
        """Create a fresh session positioned on step 1."""
        fields: Dict[str, Any] = {"started_at": self._clock()}
        if session_id:
            fields["session_id"] = session_id
        state = FlowState(**fields)

        logger.info("flow_started", session_id=state.session_id[:8])
        return self._enter_step(state, FlowStep.PERSONAL_DETAILS)

    def abandon(self, state: FlowState) -> None:
        """Record that the user left before the flow terminated."""
        if state.is_terminal:
            return
        elapsed = self._elapsed(state)
        self.tracker.form_abandonment(state.current_step, elapsed)
        logger.info(
            "flow_abandoned",
            session_id=state.session_id[:8],
            last_step=state.current_step.value,
            time_spent=elapsed,
        )

    def go_back(self, state: FlowState) -> FlowState:
        """Return to the previous step; its answers are kept as defaults."""
        if state.is_busy or state.is_terminal:
            raise FlowTransitionError(
                f"Cannot navigate back while {state.submission_status.value}"
            )
        previous = PREVIOUS_STEP.get(state.current_step)
        if previous is None:
            raise FlowTransitionError(f"No previous step for step {state.current_step.value}")

        logger.info(
            "flow_back",
            session_id=state.session_id[:8],
            from_step=state.current_step.value,
            to_step=previous.value,
        )
        return self._enter_step(state.evolve(current_step=previous, pending_category=None), previous)

    # =========================================================================
    # STEP 1: PERSONAL DETAILS
    # =========================================================================

    async def submit_personal_details(self, state: FlowState, data: Mapping[str, Any]) -> StepResult:
        step = FlowStep.PERSONAL_DETAILS
        self._require(state, step)

        try:
            fragment = parse_step(step, data, state.answers)
        except FormValidationError as e:
            return self._invalid(state, step, e)

        answers = state.answers.merged(fragment)
        events: List[str] = []
        common = common_event_properties(answers)

        if answers.form_filler_type == FormFillerType.STUDENT:
            self._pixel(events, "STUDENT_LEAD", common)
        if answers.is_masters:
            self._pixel(events, "MASTERS_LEAD", common)

        timing = {
            "grade": answers.current_grade.value,
            "form_filler_type": answers.form_filler_type.value,
            "time_spent": self._elapsed(state),
            "time_of_day": datetime.fromtimestamp(self._clock()).hour,
        }
        self._pixel(events, "FORM_PAGE1", timing)
        self.tracker.form_step_complete(step)
        if answers.is_parent:
            self._pixel(events, "PARENT_FORM_PAGE1", timing)

        if answers.current_grade == CurrentGrade.GRADE_7_BELOW:
            return await self._submit(
                state, answers, classify(answers), step, events, SubmissionStatus.DROPPED
            )

        advanced = state.evolve(
            answers=answers,
            current_step=FlowStep.ACADEMIC_DETAILS,
            triggered_events=state.triggered_events + events,
        )
        if self.config.partial_capture:
            await self._capture_partial(advanced)

        return StepResult(state=self._enter_step(advanced, FlowStep.ACADEMIC_DETAILS))

    # =========================================================================
    # STEP 2: ACADEMIC DETAILS (regular or masters)
    # =========================================================================

    async def submit_academic_details(self, state: FlowState, data: Mapping[str, Any]) -> StepResult:
        step = FlowStep.ACADEMIC_DETAILS
        self._require(state, step)

        try:
            fragment = parse_step(step, data, state.answers)
        except FormValidationError as e:
            return self._invalid(state, step, e)

        answers = state.answers.merged(fragment)
        events: List[str] = []
        spam = looks_like_spam(answers)

        if answers.is_parent:
            common = common_event_properties(answers)
            if spam:
                self._pixel(events, "SPAMMY_PARENT", {
                    **common,
                    "gpa_value": answers.gpa_value,
                    "percentage_value": answers.percentage_value,
                })
            if answers.curriculum_type == CurriculumType.STATE_BOARDS:
                self._pixel(events, "STATEBOARD_PARENT", common)

        category = classify(answers)
        common = common_event_properties(answers, category)
        elapsed = self._elapsed(state)

        if is_qualified(category):
            self._pixel(events, "QUALIFIED_LEAD_RECEIVED", {
                **common,
                "lead_category": category.value,
                "total_time_spent": elapsed,
            })

        page2_event = "FORM_PAGE2_NEXT_MASTERS" if answers.is_masters else "FORM_PAGE2_NEXT_REGULAR"
        self._pixel(events, page2_event, {
            **common,
            "lead_category": category.value,
            "time_spent": elapsed,
        })

        logger.info(
            "lead_classified",
            session_id=state.session_id[:8],
            step=step.value,
            lead_category=category.value,
            spam=spam,
        )

        # Student-filled forms always stop here, whatever the category.
        if answers.form_filler_type == FormFillerType.STUDENT:
            return await self._submit(state, answers, category, step, events, SubmissionStatus.SUBMITTED)

        if category == LeadCategory.NURTURE:
            if (
                not spam
                and answers.current_grade in EXTENDED_NURTURE_GRADES
                and answers.is_parent
            ):
                return self._begin_interstitial(
                    state, answers, category, events, InterstitialKind.NURTURE
                )
            return await self._submit(state, answers, category, step, events, SubmissionStatus.SUBMITTED)

        return self._begin_interstitial(state, answers, category, events, InterstitialKind.EVALUATION)

    # =========================================================================
    # STEP 2.5: EXTENDED NURTURE
    # =========================================================================

    async def submit_extended_nurture(self, state: FlowState, data: Mapping[str, Any]) -> StepResult:
        step = FlowStep.EXTENDED_NURTURE
        self._require(state, step)

        try:
            fragment = parse_step(step, data, state.answers)
        except FormValidationError as e:
            return self._invalid(state, step, e)

        answers = state.answers.merged(fragment)
        category = classify(answers)
        events: List[str] = []

        logger.info(
            "lead_recategorized",
            session_id=state.session_id[:8],
            previous_category=state.pending_category.value if state.pending_category else None,
            lead_category=category.value,
        )

        if is_qualified(category):
            self._pixel(events, "QUALIFIED_LEAD_RECEIVED", {
                **common_event_properties(answers, category),
                "lead_category": category.value,
                "total_time_spent": self._elapsed(state),
            })

        if category == LeadCategory.NURTURE:
            return await self._submit(state, answers, category, step, events, SubmissionStatus.SUBMITTED)

        advanced = state.evolve(
            answers=answers,
            pending_category=category,
            current_step=FlowStep.COUNSELLING,
            triggered_events=state.triggered_events + events,
        )
        return StepResult(state=self._enter_step(advanced, FlowStep.COUNSELLING))

    # =========================================================================
    # STEP 3: COUNSELLING
    # =========================================================================

    async def submit_counselling(self, state: FlowState, data: Mapping[str, Any]) -> StepResult:
        step = FlowStep.COUNSELLING
        self._require(state, step)

        try:
            selection = parse_step(step, data, state.answers)
        except FormValidationError as e:
            return self._invalid(state, step, e)

        answers = state.answers.merged(selection)
        category = state.pending_category or classify(answers)
        elapsed = self._elapsed(state)
        booked = selection.slot_picked
        events: List[str] = []

        self._pixel(events, "PAGE3_SUBMIT", {
            "counselling_slot_picked": booked,
            "total_time_spent": elapsed,
            "counsellor_name": counsellor_for(category),
            "lead_category": category.value,
        }, lead_category=category.value)

        self._pixel(events, "FORM_COMPLETE", {
            "lead_category": category.value,
            "counselling_booked": booked,
            "is_masters": answers.is_masters,
            "extended_form_completed": answers.extended_nurture is not None,
            "total_time_spent": elapsed,
        })

        self._track_flow_complete(events, answers, category, booked, elapsed)

        return await self._submit(state, answers, category, step, events, SubmissionStatus.SUBMITTED)

    # =========================================================================
    # INTERSTITIAL
    # =========================================================================

    def complete_interstitial(self, state: FlowState) -> FlowState:
        """Perform the transition the interstitial was holding back."""
        if state.submission_status != SubmissionStatus.EVALUATING or state.next_step is None:
            raise FlowTransitionError("No interstitial is running for this session")

        if state.interstitial == InterstitialKind.EVALUATION:
            self.tracker.form_step_complete(FlowStep.ACADEMIC_DETAILS)

        advanced = state.evolve(
            current_step=state.next_step,
            submission_status=SubmissionStatus.IDLE,
            interstitial=None,
            next_step=None,
        )
        return self._enter_step(advanced, advanced.current_step)

    async def run_interstitial(self, result: StepResult) -> FlowState:
        """Play the result's interstitial to completion and return the next state."""
        if result.interstitial is None:
            raise FlowTransitionError("Step result carries no interstitial")
        return await self.runner.run(
            result.interstitial,
            lambda: self.complete_interstitial(result.state),
        )

    def _begin_interstitial(
        self,
        state: FlowState,
        answers: AnswerSet,
        category: LeadCategory,
        events: List[str],
        kind: InterstitialKind,
    ) -> StepResult:
        plan = build_plan(kind, answers, self.config.interstitial_seconds)
        evaluating = state.evolve(
            answers=answers,
            pending_category=category,
            submission_status=SubmissionStatus.EVALUATING,
            interstitial=kind,
            next_step=plan.target_step,
            triggered_events=state.triggered_events + events,
        )
        self._notify(evaluating)

        logger.info(
            "interstitial_scheduled",
            session_id=state.session_id[:8],
            kind=kind.value,
            target_step=plan.target_step.value,
            seconds=plan.total_seconds,
        )
        return StepResult(state=evaluating, interstitial=plan)

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    async def _submit(
        self,
        state: FlowState,
        answers: AnswerSet,
        category: LeadCategory,
        step: FlowStep,
        events: List[str],
        terminal_status: SubmissionStatus,
    ) -> StepResult:
        submitting = state.evolve(
            answers=answers,
            pending_category=category,
            submission_status=SubmissionStatus.SUBMITTING,
            triggered_events=state.triggered_events + events,
        )
        self._notify(submitting)

        payload = build_submission_payload(
            answers,
            category,
            step,
            started_at=state.started_at,
            now=self._clock(),
            completion_status=CompletionStatus.COMPLETE,
            triggered_events=submitting.triggered_events,
            session_id=state.session_id,
        )

        try:
            await self.submitter.submit(payload)
        except SubmissionError as e:
            logger.warning(
                "submission_failed",
                session_id=state.session_id[:8],
                step=step.value,
                status_code=e.status_code,
                error=str(e),
            )
            self.tracker.form_error(step, "submission_error")
            failed = submitting.evolve(submission_status=SubmissionStatus.IDLE)
            self._notify(failed)
            return StepResult(state=failed, error_message=GENERIC_SUBMISSION_ERROR)

        done = submitting.evolve(
            submission_status=terminal_status,
            completed_at=datetime.now(timezone.utc),
        )
        self._notify(done)

        logger.info(
            "flow_terminated",
            session_id=state.session_id[:8],
            step=step.value,
            lead_category=category.value,
            status=terminal_status.value,
            total_time_spent=self._elapsed(state),
        )
        return StepResult(state=done)

    async def _capture_partial(self, state: FlowState) -> None:
        """Best-effort early capture of contact details after step 1."""
        payload = build_submission_payload(
            state.answers,
            LeadCategory.NURTURE,
            FlowStep.PERSONAL_DETAILS,
            started_at=state.started_at,
            now=self._clock(),
            completion_status=CompletionStatus.PARTIAL,
            triggered_events=state.triggered_events,
            session_id=state.session_id,
        )
        try:
            await self.submitter.submit(payload)
            logger.info("partial_captured", session_id=state.session_id[:8])
        except SubmissionError as e:
            logger.warning("partial_capture_failed", session_id=state.session_id[:8], error=str(e))

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require(self, state: FlowState, step: FlowStep) -> None:
        if state.current_step != step:
            raise FlowTransitionError(
                f"Session is on step {state.current_step.value}, not step {step.value}"
            )
        if state.submission_status != SubmissionStatus.IDLE:
            raise FlowTransitionError(
                f"Session is {state.submission_status.value}; step {step.value} cannot be submitted"
            )

    def _invalid(self, state: FlowState, step: FlowStep, error: FormValidationError) -> StepResult:
        logger.info(
            "step_validation_failed",
            session_id=state.session_id[:8],
            step=step.value,
            fields=sorted(error.errors),
        )
        return StepResult(state=state, field_errors=error.errors)

    def _elapsed(self, state: FlowState) -> int:
        return max(0, int(self._clock() - state.started_at))

    def _pixel(
        self,
        events: List[str],
        key: str,
        properties: Dict[str, Any],
        lead_category: Optional[str] = None,
    ) -> None:
        events.append(self.tracker.track_pixel(key, properties, lead_category=lead_category))

    def _enter_step(self, state: FlowState, step: FlowStep) -> FlowState:
        answers = state.answers
        events: List[str] = []
        self._pixel(events, "FORM_PAGE_VIEW", {
            "step": step.value,
            "current_grade": answers.current_grade.value if answers.current_grade else None,
            "form_filler_type": answers.form_filler_type.value if answers.form_filler_type else None,
        })
        self.tracker.form_view()

        if step == FlowStep.COUNSELLING and state.pending_category:
            self._pixel(events, "PAGE3_VIEW", {
                "lead_category": state.pending_category.value,
            }, lead_category=state.pending_category.value)

        entered = state.evolve(triggered_events=state.triggered_events + events)
        self._notify(entered)
        return entered

    def _track_flow_complete(
        self,
        events: List[str],
        answers: AnswerSet,
        category: LeadCategory,
        booked: bool,
        elapsed: int,
    ) -> None:
        base = {"total_time_spent": elapsed, "counselling_booked": booked}

        if category == LeadCategory.BCH:
            self._pixel(events, "FLOW_COMPLETE_BCH", {
                **base,
                "current_grade": answers.current_grade.value,
                "form_filler_type": answers.form_filler_type.value,
                "curriculum_type": answers.curriculum_type.value if answers.curriculum_type else None,
            })
        elif category in (LeadCategory.LUM_L1, LeadCategory.LUM_L2):
            self._pixel(events, "FLOW_COMPLETE_LUMINAIRE", {
                **base,
                "luminaire_level": category.value.replace("lum-", ""),
                "current_grade": answers.current_grade.value,
                "form_filler_type": answers.form_filler_type.value,
            })
        elif category in (LeadCategory.MASTERS_L1, LeadCategory.MASTERS_L2):
            self._pixel(events, "FLOW_COMPLETE_MASTERS", {
                **base,
                "masters_level": category.value.replace("masters-", ""),
                "application_preparation": (
                    answers.application_preparation.value if answers.application_preparation else None
                ),
            })

    def _notify(self, state: FlowState) -> None:
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(state)
        except Exception as e:
            logger.error("state_listener_failed", session_id=state.session_id[:8], error=str(e))


__all__ = [
    "FlowConfig",
    "FlowController",
    "FlowTransitionError",
    "GENERIC_SUBMISSION_ERROR",
    "counsellor_for",
]
