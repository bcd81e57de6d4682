# services/submission_service.py
# ============================================================================
# ADMISSIONS LEAD QUALIFIER - WEBHOOK SUBMISSION
# ============================================================================
# Purpose: POST the accumulated answer set to the registration webhook
#
# FAILURE HANDLING:
# - Missing webhook URL fails fast with ConfigurationError
# - Non-2xx or transport errors raise SubmissionError
# - Exactly one attempt per call; retrying is the user's decision
# ============================================================================

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Union

import httpx
import structlog

from schemas.form_definitions import (
    AnswerSet,
    CompletionStatus,
    FlowStep,
    LeadCategory,
)

logger = structlog.get_logger().bind(component="submission_service")


# ============================================================================
# SECTION 1: ERRORS
# ============================================================================

class ConfigurationError(RuntimeError):
    """Submission cannot work at all (e.g. no webhook URL configured)."""


class SubmissionError(Exception):
    """The webhook rejected the lead or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ============================================================================
# SECTION 2: CONFIGURATION
# ============================================================================

@dataclass
class SubmissionConfig:
    """Configuration for the registration webhook."""
    webhook_url: str
    timeout_seconds: float = 15.0

    def __post_init__(self):
        self.webhook_url = (self.webhook_url or "").strip()
        if not self.webhook_url:
            raise ConfigurationError(
                "Form submission URL not configured. Set ADMISSIONS_WEBHOOK_URL."
            )

    @classmethod
    def from_env(cls) -> "SubmissionConfig":
        return cls(
            webhook_url=os.getenv("ADMISSIONS_WEBHOOK_URL", ""),
            timeout_seconds=float(os.getenv("ADMISSIONS_WEBHOOK_TIMEOUT", "15.0")),
        )


# ============================================================================
# SECTION 3: PAYLOAD
# ============================================================================

def build_submission_payload(
    answers: AnswerSet,
    lead_category: LeadCategory,
    step: Union[FlowStep, str],
    started_at: float,
    now: float,
    completion_status: CompletionStatus = CompletionStatus.COMPLETE,
    triggered_events: Optional[List[str]] = None,
    session_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Flatten the answer set into the webhook's JSON body.

    Answer fields keep their camelCase wire names; metadata keys are
    snake_case. started_at and now are epoch seconds; total_time_spent is
    whole seconds since the flow started.
    """
    payload = answers.model_dump(mode="json", by_alias=True, exclude_none=True)
    step_value = step.value if isinstance(step, FlowStep) else str(step)

    payload.update({
        "lead_category": LeadCategory(lead_category).value,
        "total_time_spent": max(0, int(now - started_at)),
        "created_at": datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        "step_completed": step_value,
        "completion_status": CompletionStatus(completion_status).value,
        "triggered_events": list(triggered_events or []),
    })
    if session_id:
        payload["session_id"] = session_id

    return payload


# ============================================================================
# SECTION 4: WEBHOOK SUBMITTER
# ============================================================================

class WebhookSubmitter:
    """
    Sends lead records to the registration webhook.

    Responsibilities:
    1. Own the HTTP client
    2. POST one JSON payload per call
    3. Translate HTTP failures into SubmissionError
    """

    def __init__(
        self,
        config: Optional[SubmissionConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or SubmissionConfig.from_env()
        self._client = client
        self._owns_client = client is None

    async def initialize(self) -> None:
        """Create the HTTP client if one was not injected."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
            self._owns_client = True
            logger.info("submitter_initialized", timeout_seconds=self.config.timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client if this submitter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def submit(self, payload: Dict[str, Any]) -> None:
        """
        POST a payload to the webhook.

        Raises:
            SubmissionError: on transport failure or a non-2xx response
        """
        if self._client is None:
            await self.initialize()

        step = payload.get("step_completed")
        category = payload.get("lead_category")

        try:
            response = await self._client.post(
                self.config.webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            logger.error("submission_timeout", step=step, lead_category=category)
            raise SubmissionError("Form submission timed out") from e
        except httpx.HTTPError as e:
            logger.error("submission_transport_error", step=step, lead_category=category, error=str(e))
            raise SubmissionError(f"Form submission failed: {e}") from e

        if not response.is_success:
            logger.error(
                "submission_rejected",
                step=step,
                lead_category=category,
                status_code=response.status_code,
                detail=response.text[:200],
            )
            raise SubmissionError(
                f"Form submission failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        logger.info(
            "submission_accepted",
            step=step,
            lead_category=category,
            completion_status=payload.get("completion_status"),
        )


__all__ = [
    "ConfigurationError",
    "SubmissionError",
    "SubmissionConfig",
    "build_submission_payload",
    "WebhookSubmitter",
]
