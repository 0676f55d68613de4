"""
Criteria schemas
"""

from typing import List, Optional
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CriteriaBase(BaseModel):
    """Criteria base schema"""
    name: str = Field(..., min_length=1, max_length=255, description="Rubric name")
    description: Optional[str] = Field(None, description="Rubric description")
    customer_service_weight: float = Field(25.0, ge=0, le=100, description="Customer service weight (%)")
    product_knowledge_weight: float = Field(25.0, ge=0, le=100, description="Product knowledge weight (%)")
    communication_skills_weight: float = Field(25.0, ge=0, le=100, description="Communication skills weight (%)")
    compliance_adherence_weight: float = Field(25.0, ge=0, le=100, description="Compliance adherence weight (%)")
    required_phrases: List[str] = Field(default_factory=list, description="Phrases the agent must say")
    prohibited_phrases: List[str] = Field(default_factory=list, description="Phrases the agent must not say")

    @field_validator("required_phrases", "prohibited_phrases")
    @classmethod
    def strip_phrases(cls, value: List[str]) -> List[str]:
        phrases = []
        for phrase in value:
            phrase = phrase.strip()
            if phrase and phrase not in phrases:
                phrases.append(phrase)
        return phrases

    @property
    def weights(self) -> dict:
        return {
            "customer_service": self.customer_service_weight,
            "product_knowledge": self.product_knowledge_weight,
            "communication_skills": self.communication_skills_weight,
            "compliance_adherence": self.compliance_adherence_weight,
        }


class CriteriaCreate(CriteriaBase):
    """Create criteria request"""
    team_id: Optional[int] = Field(None, description="Team the rubric belongs to")
    is_default: bool = Field(False, description="Use as the team's default rubric")


class CriteriaResponse(CriteriaBase):
    """Criteria response"""
    id: int
    team_id: Optional[int] = None
    is_default: bool = False
    created_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
