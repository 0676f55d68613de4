"""
Scorecard model
"""

from sqlalchemy import Column, Text, Integer, ForeignKey, Float, Boolean, JSON
from sqlalchemy.orm import relationship

from app.db.base import BaseModel


class ScoreCard(BaseModel):
    """Weighted scorecard derived from a completed analysis"""
    __tablename__ = "scorecards"

    recording_id = Column(
        Integer,
        ForeignKey("recordings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    criteria_id = Column(Integer, ForeignKey("criteria.id", ondelete="SET NULL"), nullable=True)

    overall_score = Column(Float, nullable=False)
    customer_service_contribution = Column(Float, nullable=False)
    product_knowledge_contribution = Column(Float, nullable=False)
    communication_skills_contribution = Column(Float, nullable=False)
    compliance_adherence_contribution = Column(Float, nullable=False)
    weights = Column(JSON, nullable=False)

    # phrase -> hit / phrase -> violated
    required_phrases = Column(JSON, nullable=False, default=dict)
    prohibited_phrases = Column(JSON, nullable=False, default=dict)
    phrase_compliant = Column(Boolean, nullable=False, default=True)

    notes = Column(Text, nullable=False, default="")

    recording = relationship("Recording", back_populates="scorecard", lazy="raise")

    def __repr__(self):
        return f"<ScoreCard(recording_id={self.recording_id}, overall={self.overall_score})>"
