"""
Upstream AI service contracts
Speech-to-text (transcription) and language-model (analysis) clients
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from app.models.transcription import StageStatus


class AIProvider(Enum):
    """Upstream provider"""
    ASSEMBLYAI = "assemblyai"
    OPENAI = "openai"


# Score keys requested from the language model, in prompt order
SCORE_KEYS = (
    "overallScore",
    "customerService",
    "productKnowledge",
    "communicationSkills",
    "complianceAdherence",
)

LIST_KEYS = ("strengths", "improvements", "keyMoments", "recommendations")

ANALYSIS_KEYS = SCORE_KEYS + LIST_KEYS + ("summary",)


@dataclass
class TranscriptPoll:
    """One observation of an upstream transcription job"""
    job_id: str
    status: StageStatus
    text: str = ""
    error: Optional[str] = None
    utterances: List[Dict[str, Any]] = field(default_factory=list)
    confidence: Optional[float] = None
    audio_duration: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (StageStatus.COMPLETED, StageStatus.FAILED)


@dataclass(frozen=True)
class KeyMoment:
    timestamp: str
    description: str


@dataclass(frozen=True)
class AnalysisResult:
    """Validated language-model analysis"""
    overall_score: float
    customer_service: float
    product_knowledge: float
    communication_skills: float
    compliance_adherence: float
    strengths: List[str]
    improvements: List[str]
    key_moments: List[KeyMoment]
    recommendations: List[str]
    summary: str
    raw_response: str = ""

    @property
    def category_scores(self) -> Dict[str, float]:
        return {
            "customer_service": self.customer_service,
            "product_knowledge": self.product_knowledge,
            "communication_skills": self.communication_skills,
            "compliance_adherence": self.compliance_adherence,
        }


class TranscriptionClient(ABC):
    """Speech-to-text job client. Pure adapter, no local state."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.provider = self._get_provider_name()

    @abstractmethod
    def _get_provider_name(self) -> AIProvider:
        pass

    @abstractmethod
    async def submit(self, audio_url: str, speaker_labels: bool = True) -> str:
        """
        Submit an audio URL for transcription

        Args:
            audio_url: Signed URL the provider can download the audio from
            speaker_labels: Request diarization

        Returns:
            str: Upstream job id
        """
        pass

    @abstractmethod
    async def poll(self, job_id: str) -> TranscriptPoll:
        """Fetch the current state of a job"""
        pass

    @abstractmethod
    async def wait_for_completion(
        self,
        job_id: str,
        timeout: float,
        interval: Optional[float] = None
    ) -> TranscriptPoll:
        """
        Poll until the job is terminal or the timeout elapses

        Returns:
            TranscriptPoll: COMPLETED or FAILED; a timeout is a FAILED poll
        """
        pass

    async def close(self):
        pass


class AnalysisClient(ABC):
    """Language-model analysis client"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.provider = self._get_provider_name()

    @abstractmethod
    def _get_provider_name(self) -> AIProvider:
        pass

    @abstractmethod
    async def analyze(
        self,
        transcript_text: str,
        criteria_weights: Optional[Dict[str, float]] = None
    ) -> AnalysisResult:
        """
        Analyse a call transcript

        Args:
            transcript_text: Full transcript
            criteria_weights: Category weights of the applicable rubric

        Returns:
            AnalysisResult: Validated analysis

        Raises:
            UpstreamServiceError: call failed or timed out
            MalformedAnalysisError: response failed validation
        """
        pass

    async def close(self):
        pass
