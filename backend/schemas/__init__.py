# schemas/__init__.py
from schemas.form_definitions import (
    AnswerSet,
    FlowState,
    FlowStep,
    LeadCategory,
    StepResult,
    SubmissionStatus,
)

__all__ = [
    "AnswerSet",
    "FlowState",
    "FlowStep",
    "LeadCategory",
    "StepResult",
    "SubmissionStatus",
]
