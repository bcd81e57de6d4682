# services/analytics_service.py
# ============================================================================
# ADMISSIONS LEAD QUALIFIER - ANALYTICS SERVICE
# ============================================================================
# Fire-and-forget marketing events (Meta Pixel + Google Analytics style)
# ============================================================================

import os
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Callable

import structlog

from schemas.form_definitions import (
    AnswerSet,
    FlowStep,
    LeadCategory,
    ScholarshipRequirement,
)

logger = structlog.get_logger().bind(component="analytics_service")


PIXEL = "pixel"
GA = "ga"

EVENT_PREFIXES = {
    # Form navigation
    "FORM_PAGE_VIEW": "admissions_page_view",
    "FORM_PAGE1": "admissions_page1_continue",
    "PARENT_FORM_PAGE1": "parent_admissions_page1_continue",
    "FORM_PAGE2_NEXT_REGULAR": "admissions_page2_next_regular",
    "FORM_PAGE2_NEXT_MASTERS": "admissions_page2_next_masters",
    "FORM_COMPLETE": "admissions_form_complete",

    # Qualification
    "QUALIFIED_LEAD_RECEIVED": "admissions_qualified_lead_received",

    # Counselling step (category-scoped)
    "PAGE3_VIEW": "admissions_page3_view",
    "PAGE3_SUBMIT": "admissions_page3_submit",

    # Flow completion
    "FLOW_COMPLETE_BCH": "admissions_flow_complete_bch",
    "FLOW_COMPLETE_LUMINAIRE": "admissions_flow_complete_luminaire",
    "FLOW_COMPLETE_MASTERS": "admissions_flow_complete_masters",

    # Audience signals
    "STUDENT_LEAD": "admissions_student_lead",
    "SPAMMY_PARENT": "admissions_spammy_parent",
    "MASTERS_LEAD": "admissions_masters_lead",
    "STATEBOARD_PARENT": "admissions_stateboard_parent",
}

CATEGORY_SCOPED_EVENTS = {"PAGE3_VIEW", "PAGE3_SUBMIT"}

EventSink = Callable[[str, str, Dict[str, Any]], None]


@dataclass
class AnalyticsConfig:
    """Configuration for event naming."""
    environment: str = "dev"
    measurement_id: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AnalyticsConfig":
        return cls(
            environment=os.getenv("ADMISSIONS_ENVIRONMENT", "").strip() or "dev",
            measurement_id=os.getenv("ADMISSIONS_GA_MEASUREMENT_ID") or None,
        )


def event_name(key: str, environment: str, lead_category: Optional[str] = None) -> str:
    """
    Environment-suffixed pixel event name.

    Page-3 events also carry the lead category, e.g.
    ``admissions_page3_submit_lum-l1_prod``.
    """
    prefix = EVENT_PREFIXES[key]
    if lead_category and key in CATEGORY_SCOPED_EVENTS:
        category = lead_category.value if isinstance(lead_category, LeadCategory) else lead_category
        return f"{prefix}_{category.lower()}_{environment}"
    return f"{prefix}_{environment}"


def common_event_properties(
    answers: AnswerSet,
    lead_category: Optional[LeadCategory] = None,
) -> Dict[str, Any]:
    """Properties attached to most pixel events."""
    return {
        "current_grade": answers.current_grade.value if answers.current_grade else None,
        "form_filler_type": answers.form_filler_type.value if answers.form_filler_type else None,
        "curriculum_type": answers.curriculum_type.value if answers.curriculum_type else None,
        "scholarship_requirement": (
            answers.scholarship_requirement.value if answers.scholarship_requirement else None
        ),
        "lead_category": lead_category.value if lead_category else None,
        "has_full_scholarship_requirement": (
            answers.scholarship_requirement == ScholarshipRequirement.FULL_SCHOLARSHIP
        ),
        "is_international_curriculum": answers.has_international_curriculum,
    }


def log_sink(channel: str, name: str, properties: Dict[str, Any]) -> None:
    """Default sink: structured log line per event."""
    logger.info("analytics_event", channel=channel, event_name=name, properties=properties)


class AnalyticsTracker:
    """
    Emits named events with a property bag to every registered sink.

    Emission is a side effect only: a failing sink is logged and skipped,
    never raised into the flow.
    """

    def __init__(
        self,
        config: Optional[AnalyticsConfig] = None,
        sinks: Optional[List[EventSink]] = None,
    ):
        self.config = config or AnalyticsConfig.from_env()
        self.sinks: List[EventSink] = list(sinks) if sinks is not None else [log_sink]

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def event_name(self, key: str, lead_category: Optional[str] = None) -> str:
        return event_name(key, self.config.environment, lead_category)

    def _emit(self, channel: str, name: str, properties: Dict[str, Any]) -> None:
        for sink in self.sinks:
            try:
                sink(channel, name, properties)
            except Exception as e:
                logger.error("analytics_sink_failed", channel=channel, event_name=name, error=str(e))

    def track_pixel(
        self,
        key: str,
        properties: Optional[Dict[str, Any]] = None,
        lead_category: Optional[str] = None,
    ) -> str:
        """Fire a pixel event (mirrored to GA) and return its full name."""
        name = self.event_name(key, lead_category)
        props = dict(properties or {})
        self._emit(PIXEL, name, props)
        self._emit(GA, name, props)
        return name

    def track(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        """Fire a plain GA event."""
        self._emit(GA, name, dict(properties or {}))

    # =========================================================================
    # FORM EVENTS
    # =========================================================================

    def form_view(self) -> None:
        self.track("form_view")

    def form_step_complete(self, step: FlowStep) -> None:
        self.track("form_step_complete", {"step": step.value})

    def form_abandonment(self, last_step: FlowStep, time_spent: int) -> None:
        self.track("form_abandonment", {"last_step": last_step.value, "time_spent": time_spent})

    def form_error(self, step: FlowStep, error: str) -> None:
        self.track("form_error", {"step": step.value, "error": error})


__all__ = [
    "PIXEL",
    "GA",
    "EVENT_PREFIXES",
    "AnalyticsConfig",
    "AnalyticsTracker",
    "EventSink",
    "common_event_properties",
    "event_name",
    "log_sink",
]
