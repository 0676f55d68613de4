"""
Pipeline request/response schemas
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.transcription import StageStatus


class AnalyzeRequest(BaseModel):
    """Analysis request"""
    criteria_id: Optional[int] = Field(None, description="Rubric to score against; defaults to the recording's")


class RescoreRequest(BaseModel):
    """Rescore request"""
    criteria_id: Optional[int] = Field(None, description="Rubric to score against; resolved like analysis when omitted")


class ShareReportRequest(BaseModel):
    """Share report request"""
    email: EmailStr = Field(..., description="Destination address")
    subject: Optional[str] = Field(None, max_length=255, description="Mail subject")


class SpeakerLabel(BaseModel):
    """Who a diarised speaker is"""
    name: str = Field(..., min_length=1, max_length=100)
    role: str = Field(..., min_length=1, max_length=100)


class SectionLabel(BaseModel):
    """A named, coloured part of the call"""
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., pattern=r"^#[0-9a-fA-F]{6}$")


class TranscriptEditRequest(BaseModel):
    """Transcript annotations; omitted fields keep their stored value"""
    speaker_map: Optional[Dict[str, SpeakerLabel]] = Field(None, description="Speaker label to person")
    sections: Optional[Dict[str, SectionLabel]] = Field(None, description="Section id to label")
    context_notes: Optional[str] = Field(None, max_length=10000, description="Reviewer notes")


class KeyMomentResponse(BaseModel):
    timestamp: str
    description: str


class TranscriptionResponse(BaseModel):
    """Transcription stage"""
    recording_id: int
    status: StageStatus
    text: str = ""
    error_detail: Optional[str] = None
    attempt: int = 0
    utterances: Optional[List[Dict[str, Any]]] = None
    confidence: Optional[float] = None
    audio_duration: Optional[float] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    speaker_map: Optional[Dict[str, SpeakerLabel]] = None
    sections: Optional[Dict[str, SectionLabel]] = None
    context_notes: Optional[str] = None
    edited_at: Optional[datetime] = None
    edited_by_id: Optional[int] = None

    class Config:
        from_attributes = True


class AnalysisResponse(BaseModel):
    """Analysis stage"""
    recording_id: int
    status: StageStatus
    attempt: int = 0
    criteria_id: Optional[int] = None
    overall_score: Optional[float] = None
    customer_service: Optional[float] = None
    product_knowledge: Optional[float] = None
    communication_skills: Optional[float] = None
    compliance_adherence: Optional[float] = None
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    key_moments: List[KeyMomentResponse] = Field(default_factory=list)
    summary: str = ""
    error_code: Optional[str] = None
    error_detail: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ScoreCardResponse(BaseModel):
    """Weighted scorecard"""
    recording_id: int
    criteria_id: Optional[int] = None
    overall_score: float
    customer_service_contribution: float
    product_knowledge_contribution: float
    communication_skills_contribution: float
    compliance_adherence_contribution: float
    weights: Dict[str, float]
    required_phrases: Dict[str, bool]
    prohibited_phrases: Dict[str, bool]
    phrase_compliant: bool
    notes: str = ""

    class Config:
        from_attributes = True


class PipelineStateResponse(BaseModel):
    """Both stages plus the scorecard of one recording"""
    recording_id: int
    title: str
    transcription: Optional[TranscriptionResponse] = None
    analysis: Optional[AnalysisResponse] = None
    scorecard: Optional[ScoreCardResponse] = None
