"""Tests for the webhook submitter and payload builder."""

import json

import httpx
import pytest

from schemas.form_definitions import (
    AnswerSet,
    CompletionStatus,
    FlowStep,
    LeadCategory,
)
from services.submission_service import (
    ConfigurationError,
    SubmissionConfig,
    SubmissionError,
    WebhookSubmitter,
    build_submission_payload,
)

WEBHOOK_URL = "https://hooks.example.com/admissions"


def make_submitter(handler) -> WebhookSubmitter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookSubmitter(config=SubmissionConfig(webhook_url=WEBHOOK_URL), client=client)


class TestSubmissionConfig:

    def test_blank_url_fails_fast(self):
        with pytest.raises(ConfigurationError):
            SubmissionConfig(webhook_url="   ")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ADMISSIONS_WEBHOOK_URL", WEBHOOK_URL)
        monkeypatch.setenv("ADMISSIONS_WEBHOOK_TIMEOUT", "5")
        config = SubmissionConfig.from_env()
        assert config.webhook_url == WEBHOOK_URL
        assert config.timeout_seconds == 5.0

    def test_from_env_without_url(self, monkeypatch):
        monkeypatch.delenv("ADMISSIONS_WEBHOOK_URL", raising=False)
        with pytest.raises(ConfigurationError):
            SubmissionConfig.from_env()


class TestBuildSubmissionPayload:

    def test_metadata_and_camel_case_answers(self):
        answers = AnswerSet(
            current_grade="12",
            form_filler_type="parent",
            student_first_name="Aarav",
            phone_number="9876543210",
        )
        payload = build_submission_payload(
            answers,
            LeadCategory.LUM_L1,
            FlowStep.COUNSELLING,
            started_at=1000.0,
            now=1095.7,
            triggered_events=["admissions_form_complete_test"],
            session_id="abc123",
        )

        assert payload["currentGrade"] == "12"
        assert payload["studentFirstName"] == "Aarav"
        assert payload["phoneNumber"] == "9876543210"
        assert "parentName" not in payload
        assert payload["lead_category"] == "lum-l1"
        assert payload["total_time_spent"] == 95
        assert payload["step_completed"] == "3"
        assert payload["completion_status"] == "complete"
        assert payload["triggered_events"] == ["admissions_form_complete_test"]
        assert payload["session_id"] == "abc123"
        assert payload["created_at"].startswith("1970-01-01T00:18:15")

    def test_partial_payload(self):
        payload = build_submission_payload(
            AnswerSet(current_grade="11"),
            LeadCategory.NURTURE,
            FlowStep.PERSONAL_DETAILS,
            started_at=50.0,
            now=40.0,
            completion_status=CompletionStatus.PARTIAL,
        )
        assert payload["completion_status"] == "partial"
        assert payload["total_time_spent"] == 0
        assert payload["triggered_events"] == []
        assert "session_id" not in payload


class TestWebhookSubmitter:

    @pytest.mark.asyncio
    async def test_posts_json(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        submitter = make_submitter(handler)
        await submitter.submit({"lead_category": "bch", "step_completed": "3"})

        assert len(seen) == 1
        assert str(seen[0].url) == WEBHOOK_URL
        assert seen[0].method == "POST"
        assert seen[0].headers["content-type"] == "application/json"
        assert json.loads(seen[0].content) == {"lead_category": "bch", "step_completed": "3"}

    @pytest.mark.asyncio
    async def test_non_2xx_raises_with_status(self):
        submitter = make_submitter(lambda request: httpx.Response(502))

        with pytest.raises(SubmissionError) as exc_info:
            await submitter.submit({"lead_category": "nurture"})

        assert exc_info.value.status_code == 502
        assert "502" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_single_attempt_only(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        submitter = make_submitter(handler)
        with pytest.raises(SubmissionError):
            await submitter.submit({})
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        submitter = make_submitter(handler)
        with pytest.raises(SubmissionError) as exc_info:
            await submitter.submit({})
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        submitter = make_submitter(handler)
        with pytest.raises(SubmissionError, match="timed out"):
            await submitter.submit({})

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(204)))
        submitter = WebhookSubmitter(config=SubmissionConfig(webhook_url=WEBHOOK_URL), client=client)

        await submitter.submit({})
        await submitter.close()

        assert not client.is_closed
        await client.aclose()
