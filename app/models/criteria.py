"""
Scoring criteria model
"""

from sqlalchemy import Column, String, Text, Integer, Float, Boolean, JSON, Index

from app.db.base import BaseModel


class Criteria(BaseModel):
    """Weighted rubric plus phrase rules"""
    __tablename__ = "criteria"

    name = Column(String(255), nullable=False)
    description = Column(Text)

    # Category weights, must sum to 100
    customer_service_weight = Column(Float, nullable=False, default=25.0)
    product_knowledge_weight = Column(Float, nullable=False, default=25.0)
    communication_skills_weight = Column(Float, nullable=False, default=25.0)
    compliance_adherence_weight = Column(Float, nullable=False, default=25.0)

    required_phrases = Column(JSON, nullable=False, default=list)
    prohibited_phrases = Column(JSON, nullable=False, default=list)

    team_id = Column(Integer, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_by_id = Column(Integer, nullable=True)

    __table_args__ = (
        Index('ix_criteria_team_default', 'team_id', 'is_default'),
    )

    @property
    def weights(self) -> dict:
        return {
            "customer_service": self.customer_service_weight,
            "product_knowledge": self.product_knowledge_weight,
            "communication_skills": self.communication_skills_weight,
            "compliance_adherence": self.compliance_adherence_weight,
        }

    def __repr__(self):
        return f"<Criteria(id={self.id}, name='{self.name}')>"
