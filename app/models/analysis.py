"""
Analysis model
"""

from sqlalchemy import Column, String, Text, Integer, ForeignKey, Float, DateTime, Enum, JSON
from sqlalchemy.orm import relationship

from app.db.base import BaseModel
from app.models.transcription import StageStatus


class Analysis(BaseModel):
    """AI quality analysis of a recording, one per recording"""
    __tablename__ = "analyses"

    recording_id = Column(
        Integer,
        ForeignKey("recordings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    status = Column(Enum(StageStatus), nullable=False, default=StageStatus.PENDING)
    attempt = Column(Integer, nullable=False, default=0)
    criteria_id = Column(Integer, ForeignKey("criteria.id", ondelete="SET NULL"), nullable=True)

    # Scores reported by the model, 0-100
    overall_score = Column(Float, nullable=True)
    customer_service = Column(Float, nullable=True)
    product_knowledge = Column(Float, nullable=True)
    communication_skills = Column(Float, nullable=True)
    compliance_adherence = Column(Float, nullable=True)

    strengths = Column(JSON, nullable=False, default=list)
    improvements = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)
    key_moments = Column(JSON, nullable=False, default=list)
    summary = Column(Text, nullable=False, default="")

    error_code = Column(String(64), nullable=True)
    error_detail = Column(Text, nullable=True)
    raw_response = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    recording = relationship("Recording", back_populates="analysis", lazy="raise")

    def __repr__(self):
        return f"<Analysis(recording_id={self.recording_id}, status={self.status.value})>"
