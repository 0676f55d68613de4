"""
OpenAI call analysis client
"""

import json
import math
from typing import Dict, Any, List, Optional, Union

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, ValidationError as PydanticValidationError, field_validator

from app.core.exceptions import MalformedAnalysisError, UpstreamServiceError
from app.core.logging import ai_logger
from .base import AnalysisClient, AIProvider, AnalysisResult, KeyMoment


ANALYSIS_SYSTEM_PROMPT = """You are a call center quality assurance expert. Analyze the following sales call transcription and provide a comprehensive assessment.

Focus on:
1. Overall call quality (score 0-100)
2. Customer service (score 0-100)
3. Product knowledge (score 0-100)
4. Communication skills (score 0-100)
5. Compliance adherence (score 0-100)
6. Key strengths
7. Areas for improvement
8. Specific moments of excellence or concern (with timestamps if available)
9. Actionable recommendations

Format your response as a JSON object with exactly the following keys:
- overallScore (number 0-100)
- customerService (number 0-100)
- productKnowledge (number 0-100)
- communicationSkills (number 0-100)
- complianceAdherence (number 0-100)
- strengths (array of strings)
- improvements (array of strings)
- keyMoments (array of objects with "timestamp" and "description")
- recommendations (array of strings)
- summary (string)
"""

# Scores this close outside [0, 100] are clamped; further out is rejected
SCORE_TOLERANCE = 0.01

Score = Union[StrictInt, StrictFloat]


class KeyMomentPayload(BaseModel):
    timestamp: Union[StrictStr, StrictInt, StrictFloat]
    description: StrictStr


class AnalysisPayload(BaseModel):
    """Shape the language model must return"""
    overallScore: Score
    customerService: Score
    productKnowledge: Score
    communicationSkills: Score
    complianceAdherence: Score
    strengths: List[StrictStr]
    improvements: List[StrictStr]
    keyMoments: List[KeyMomentPayload]
    recommendations: List[StrictStr]
    summary: StrictStr

    @field_validator(
        "overallScore", "customerService", "productKnowledge",
        "communicationSkills", "complianceAdherence"
    )
    @classmethod
    def score_in_range(cls, value):
        value = float(value)
        if math.isnan(value) or math.isinf(value):
            raise ValueError("score must be a finite number")
        if value < -SCORE_TOLERANCE or value > 100 + SCORE_TOLERANCE:
            raise ValueError(f"score {value:g} outside 0-100")
        return min(100.0, max(0.0, value))


def _describe_validation_error(error: PydanticValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
        problems.append(f"{location}: {item.get('msg')}")
    return "; ".join(problems)


def parse_analysis_payload(raw: Optional[str]) -> AnalysisResult:
    """
    Validate a raw language-model response

    Raises:
        MalformedAnalysisError: not JSON, not an object, missing keys,
            wrong types or scores out of range
    """
    if not raw or not raw.strip():
        raise MalformedAnalysisError("Analysis response was empty", raw_payload=raw)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedAnalysisError(f"Analysis response is not valid JSON: {e.msg}", raw_payload=raw) from e

    if not isinstance(data, dict):
        raise MalformedAnalysisError("Analysis response is not a JSON object", raw_payload=raw)

    try:
        payload = AnalysisPayload.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedAnalysisError(
            f"Analysis response failed validation: {_describe_validation_error(e)}",
            raw_payload=raw
        ) from e

    return AnalysisResult(
        overall_score=payload.overallScore,
        customer_service=payload.customerService,
        product_knowledge=payload.productKnowledge,
        communication_skills=payload.communicationSkills,
        compliance_adherence=payload.complianceAdherence,
        strengths=list(payload.strengths),
        improvements=list(payload.improvements),
        key_moments=[KeyMoment(timestamp=str(m.timestamp), description=m.description) for m in payload.keyMoments],
        recommendations=list(payload.recommendations),
        summary=payload.summary,
        raw_response=raw
    )


def build_system_prompt(criteria_weights: Optional[Dict[str, float]] = None) -> str:
    if not criteria_weights:
        return ANALYSIS_SYSTEM_PROMPT

    lines = [f"- {name.replace('_', ' ')}: {weight:g}%" for name, weight in criteria_weights.items()]
    return (
        ANALYSIS_SYSTEM_PROMPT
        + "\nThe organisation weights the categories as follows when scoring:\n"
        + "\n".join(lines)
        + "\n"
    )


class OpenAIAnalysisClient(AnalysisClient):
    """GPT-based call analysis"""

    def __init__(self, config: Dict[str, Any], client: Optional[AsyncOpenAI] = None):
        super().__init__(config)

        if client is None:
            http_client = None
            if config.get("http_proxy"):
                http_client = httpx.AsyncClient(
                    proxy=config.get("http_proxy"),
                    timeout=config.get("timeout", 60)
                )

            client = AsyncOpenAI(
                api_key=config.get("api_key"),
                base_url=config.get("base_url"),
                timeout=config.get("timeout", 60),
                max_retries=0,
                http_client=http_client
            )

        self.client = client
        self.model = config.get("model", "gpt-4o")
        self.temperature = config.get("temperature", 0.7)

    def _get_provider_name(self) -> AIProvider:
        return AIProvider.OPENAI

    async def analyze(
        self,
        transcript_text: str,
        criteria_weights: Optional[Dict[str, float]] = None
    ) -> AnalysisResult:
        messages = [
            {"role": "system", "content": build_system_prompt(criteria_weights)},
            {"role": "user", "content": transcript_text},
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=self.temperature
            )
        except openai.APITimeoutError as e:
            raise UpstreamServiceError("Language model request timed out", service=self.provider.value) from e
        except openai.APIStatusError as e:
            raise UpstreamServiceError(
                f"Language model returned HTTP {e.status_code}",
                service=self.provider.value
            ) from e
        except openai.OpenAIError as e:
            raise UpstreamServiceError(
                f"Language model request failed: {e.__class__.__name__}: {e}",
                service=self.provider.value
            ) from e

        if not response.choices:
            raise MalformedAnalysisError("Language model returned no choices", raw_payload=None)

        raw = response.choices[0].message.content
        ai_logger.info(
            f"Analysis completed by {response.model} "
            f"(finish_reason={response.choices[0].finish_reason})"
        )
        return parse_analysis_payload(raw)

    async def close(self):
        await self.client.close()
