# agents/__init__.py
from agents.lead_classifier import (
    classify,
    is_qualified,
    looks_like_spam,
)

from agents.step_validators import (
    FormValidationError,
    validate_step,
    parse_step,
)

from agents.flow_controller import (
    FlowConfig,
    FlowController,
    FlowTransitionError,
)

__all__ = [
    # Lead Classifier
    "classify",
    "is_qualified",
    "looks_like_spam",
    # Step Validators
    "FormValidationError",
    "validate_step",
    "parse_step",
    # Flow Controller
    "FlowConfig",
    "FlowController",
    "FlowTransitionError",
]
