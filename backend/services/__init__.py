# services/__init__.py
# ============================================================================
# ADMISSIONS LEAD QUALIFIER - SERVICES MODULE
# ============================================================================
# Webhook submission and marketing analytics
# ============================================================================

from services.submission_service import (
    ConfigurationError,
    SubmissionError,
    SubmissionConfig,
    WebhookSubmitter,
    build_submission_payload,
)

from services.analytics_service import (
    AnalyticsConfig,
    AnalyticsTracker,
    common_event_properties,
    event_name,
)

__all__ = [
    # Submission
    "ConfigurationError",
    "SubmissionError",
    "SubmissionConfig",
    "WebhookSubmitter",
    "build_submission_payload",
    # Analytics
    "AnalyticsConfig",
    "AnalyticsTracker",
    "common_event_properties",
    "event_name",
]
