"""
Language-model analysis client tests
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from hypothesis import given, strategies as st

from app.core.exceptions import MalformedAnalysisError, UpstreamServiceError
from app.services.ai.openai_provider import (
    ANALYSIS_SYSTEM_PROMPT,
    OpenAIAnalysisClient,
    build_system_prompt,
    parse_analysis_payload,
)
from app.tests.helpers import analysis_json


def completion(content, model="gpt-4o"):
    choice = SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")
    return SimpleNamespace(choices=[choice], model=model)


def make_client(create) -> OpenAIAnalysisClient:
    openai_client = MagicMock()
    openai_client.chat.completions.create = create
    openai_client.close = AsyncMock()
    return OpenAIAnalysisClient({"model": "gpt-4o", "temperature": 0.7}, client=openai_client)


class TestParseAnalysisPayload:

    def test_valid_payload(self):
        result = parse_analysis_payload(analysis_json(keyMoments=[{"timestamp": 12.5, "description": "Pricing"}]))

        assert result.overall_score == 83
        assert result.category_scores == {
            "customer_service": 80,
            "product_knowledge": 85,
            "communication_skills": 78,
            "compliance_adherence": 90,
        }
        assert result.key_moments[0].timestamp == "12.5"
        assert result.summary == "Polite, well-structured call"

    def test_extra_keys_are_ignored(self):
        raw = json.dumps({**json.loads(analysis_json()), "sentiment": "positive"})
        assert parse_analysis_payload(raw).overall_score == 83

    @pytest.mark.parametrize("raw", [
        None,
        "",
        "not json",
        "[1, 2, 3]",
        analysis_json(overallScore=None),
        analysis_json(customerService="80"),
        analysis_json(productKnowledge=True),
        analysis_json(communicationSkills=101),
        analysis_json(complianceAdherence=-3),
        analysis_json(strengths="Friendly"),
        analysis_json(keyMoments=[{"timestamp": "00:01"}]),
        analysis_json(summary=None),
    ])
    def test_malformed_payloads(self, raw):
        with pytest.raises(MalformedAnalysisError) as exc_info:
            parse_analysis_payload(raw)
        assert exc_info.value.code == "MALFORMED_ANALYSIS"
        assert exc_info.value.raw_payload == raw

    def test_scores_marginally_out_of_range_are_clamped(self):
        result = parse_analysis_payload(analysis_json(overallScore=100.004, customerService=-0.005))
        assert result.overall_score == 100.0
        assert result.customer_service == 0.0

    def test_non_finite_score_rejected(self):
        raw = analysis_json().replace('"overallScore": 83', '"overallScore": NaN')
        with pytest.raises(MalformedAnalysisError):
            parse_analysis_payload(raw)

    @given(st.floats(min_value=0, max_value=100, allow_nan=False))
    def test_in_range_scores_round_trip(self, score):
        assert parse_analysis_payload(analysis_json(overallScore=score)).overall_score == score

    @given(st.one_of(
        st.floats(min_value=100.02, max_value=1e9),
        st.floats(max_value=-0.02, min_value=-1e9),
    ))
    def test_out_of_range_scores_rejected(self, score):
        with pytest.raises(MalformedAnalysisError):
            parse_analysis_payload(analysis_json(overallScore=score))


class TestSystemPrompt:

    def test_default_prompt(self):
        assert build_system_prompt() == ANALYSIS_SYSTEM_PROMPT

    def test_weights_are_mentioned(self):
        prompt = build_system_prompt({
            "customer_service": 40,
            "product_knowledge": 20,
            "communication_skills": 20,
            "compliance_adherence": 20,
        })
        assert prompt.startswith(ANALYSIS_SYSTEM_PROMPT)
        assert "40" in prompt


class TestOpenAIAnalysisClient:

    @pytest.mark.asyncio
    async def test_analyze(self):
        create = AsyncMock(return_value=completion(analysis_json()))
        client = make_client(create)

        result = await client.analyze("Hello, thanks for calling")

        assert result.communication_skills == 78
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["temperature"] == 0.7
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT}
        assert kwargs["messages"][1] == {"role": "user", "content": "Hello, thanks for calling"}

    @pytest.mark.asyncio
    async def test_malformed_content(self):
        client = make_client(AsyncMock(return_value=completion('{"overallScore": 50}')))

        with pytest.raises(MalformedAnalysisError) as exc_info:
            await client.analyze("Hello")
        assert exc_info.value.raw_payload == '{"overallScore": 50}'

    @pytest.mark.asyncio
    async def test_no_choices(self):
        client = make_client(AsyncMock(return_value=SimpleNamespace(choices=[], model="gpt-4o")))

        with pytest.raises(MalformedAnalysisError):
            await client.analyze("Hello")

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client = make_client(AsyncMock(side_effect=openai.APITimeoutError(request=request)))

        with pytest.raises(UpstreamServiceError) as exc_info:
            await client.analyze("Hello")
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_status_error_is_upstream_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(429, request=request, json={"error": {"message": "rate limited"}})
        error = openai.RateLimitError("rate limited", response=response, body=None)
        client = make_client(AsyncMock(side_effect=error))

        with pytest.raises(UpstreamServiceError) as exc_info:
            await client.analyze("Hello")
        assert "429" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_close(self):
        client = make_client(AsyncMock())
        await client.close()
        client.client.close.assert_awaited_once()
