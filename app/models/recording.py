"""
Recording model
"""

from sqlalchemy import Column, String, Text, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship

from app.db.base import BaseModel


class Recording(BaseModel):
    """Uploaded call recording"""
    __tablename__ = "recordings"

    title = Column(String(255), nullable=False)
    description = Column(Text)
    storage_key = Column(String(1024), nullable=False)

    # Users, teams and employees are owned by the account service
    uploaded_by_id = Column(Integer, nullable=False)
    team_id = Column(Integer, nullable=True)
    employee_id = Column(Integer, nullable=True)

    # Rubric picked at upload time
    criteria_id = Column(Integer, ForeignKey("criteria.id", ondelete="SET NULL"), nullable=True)

    criteria = relationship("Criteria", lazy="raise")
    transcription = relationship("Transcription", back_populates="recording", uselist=False, lazy="raise")
    analysis = relationship("Analysis", back_populates="recording", uselist=False, lazy="raise")
    scorecard = relationship("ScoreCard", back_populates="recording", uselist=False, lazy="raise")

    __table_args__ = (
        Index('ix_recordings_uploaded_by', 'uploaded_by_id'),
        Index('ix_recordings_team', 'team_id'),
    )

    def __repr__(self):
        return f"<Recording(id={self.id}, title='{self.title}')>"
