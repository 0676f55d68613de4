"""
Transcription model
"""

import enum

from sqlalchemy import Column, String, Text, Integer, ForeignKey, Float, DateTime, Enum, JSON
from sqlalchemy.orm import relationship

from app.db.base import BaseModel


class StageStatus(enum.Enum):
    """Status of a pipeline stage"""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Statuses a stage may be claimed from
CLAIMABLE_STATUSES = (StageStatus.PENDING, StageStatus.FAILED)


class Transcription(BaseModel):
    """Transcript of a recording, one per recording"""
    __tablename__ = "transcriptions"

    recording_id = Column(
        Integer,
        ForeignKey("recordings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    status = Column(Enum(StageStatus), nullable=False, default=StageStatus.PENDING)
    text = Column(Text, nullable=False, default="")
    error_detail = Column(Text, nullable=True)

    # Attempt generation, bumped on every claim into PROCESSING
    attempt = Column(Integer, nullable=False, default=0)
    upstream_job_id = Column(String(128), nullable=True)

    utterances = Column(JSON, nullable=True)
    confidence = Column(Float, nullable=True)
    audio_duration = Column(Float, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Reviewer annotations on a completed transcript; text stays as transcribed
    speaker_map = Column(JSON, nullable=True)  # speaker label -> {name, role}
    sections = Column(JSON, nullable=True)  # section id -> {name, color}
    context_notes = Column(Text, nullable=True)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    edited_by_id = Column(Integer, nullable=True)

    recording = relationship("Recording", back_populates="transcription", lazy="raise")

    def __repr__(self):
        return f"<Transcription(recording_id={self.recording_id}, status={self.status.value})>"
