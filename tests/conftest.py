"""
Shared fixtures for the admissions flow tests.

Answer builders return the raw snake_case dicts the UI posts for each
step; individual tests override single fields with keyword arguments.
"""

from typing import Any, Dict, List, Tuple

import pytest

from services.analytics_service import AnalyticsConfig, AnalyticsTracker
from services.submission_service import SubmissionError


# =============================================================================
# ANSWER BUILDERS
# =============================================================================

def personal_details(**overrides: Any) -> Dict[str, Any]:
    data = {
        "current_grade": "11",
        "form_filler_type": "parent",
        "student_first_name": "Aarav",
        "student_last_name": "Mehta",
        "parent_name": "Priya Mehta",
        "email": "priya@example.com",
        "phone_number": "9876543210",
        "area_of_residence": "Indiranagar",
        "whatsapp_consent": True,
    }
    data.update(overrides)
    return data


def academic_details(**overrides: Any) -> Dict[str, Any]:
    data = {
        "school_name": "Greenwood High",
        "curriculum_type": "IB",
        "academic_performance": "top_10",
        "target_university_rank": "top_50",
        "scholarship_requirement": "scholarship_optional",
        "preferred_countries": ["UK", "USA"],
    }
    data.update(overrides)
    return data


def masters_details(**overrides: Any) -> Dict[str, Any]:
    data = {
        "school_name": "IIT Madras",
        "intake": "jan_aug_2026",
        "graduation_status": "2025",
        "work_experience": "1_2_years",
        "grade_format": "gpa",
        "gpa_value": "8.4",
        "entrance_exam": "gre",
        "field_of_study": "Computer Science",
        "application_preparation": "researching_now",
        "target_universities": "top_20_50",
        "support_level": "personalized_guidance",
        "scholarship_requirement": "partial_scholarship",
    }
    data.update(overrides)
    return data


def extended_nurture(**overrides: Any) -> Dict[str, Any]:
    data = {
        "strong_profile_intent": "yes",
        "partial_funding_approach": "accept_loans",
    }
    data.update(overrides)
    return data


def counselling(**overrides: Any) -> Dict[str, Any]:
    data = {"selected_date": "2026-11-02", "selected_slot": "10:00 AM"}
    data.update(overrides)
    return data


# =============================================================================
# FAKES
# =============================================================================

class RecordingSink:
    """Analytics sink that keeps every emitted event."""

    def __init__(self):
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def __call__(self, channel: str, name: str, properties: Dict[str, Any]) -> None:
        self.events.append((channel, name, properties))

    def names(self, channel: str = "pixel") -> List[str]:
        return [name for ch, name, _ in self.events if ch == channel]

    def properties(self, name: str) -> Dict[str, Any]:
        for _, event, props in self.events:
            if event == name:
                return props
        raise KeyError(name)


class FakeSubmitter:
    """Stands in for WebhookSubmitter; fails the next N calls on request."""

    def __init__(self, failures: int = 0):
        self.payloads: List[Dict[str, Any]] = []
        self.failures = failures

    async def submit(self, payload: Dict[str, Any]) -> None:
        if self.failures:
            self.failures -= 1
            raise SubmissionError("Form submission failed: 500 Internal Server Error", status_code=500)
        self.payloads.append(payload)

    @property
    def last(self) -> Dict[str, Any]:
        return self.payloads[-1]


class FakeClock:
    def __init__(self, start: float = 1_750_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def no_sleep(seconds: float) -> None:
    return None


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def tracker(sink):
    return AnalyticsTracker(config=AnalyticsConfig(environment="test"), sinks=[sink])


@pytest.fixture
def submitter():
    return FakeSubmitter()


@pytest.fixture
def clock():
    return FakeClock()
