"""
Scorecard computation
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

from app.core.exceptions import ValidationError


CATEGORIES = (
    "customer_service",
    "product_knowledge",
    "communication_skills",
    "compliance_adherence",
)

EQUAL_WEIGHTS = {category: 25.0 for category in CATEGORIES}

WEIGHT_EPSILON = 0.01


@dataclass(frozen=True)
class ScoreCardData:
    """Computed scorecard, ready to persist"""
    overall_score: float
    contributions: Dict[str, float]
    weights: Dict[str, float]
    required_phrases: Dict[str, bool] = field(default_factory=dict)
    prohibited_phrases: Dict[str, bool] = field(default_factory=dict)
    criteria_id: Optional[int] = None
    notes: str = ""

    @property
    def phrase_compliant(self) -> bool:
        return all(self.required_phrases.values()) and not any(self.prohibited_phrases.values())


def validate_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    """
    Check a weight set covers the four categories and sums to 100

    Raises:
        ValidationError: missing category, negative weight, or bad sum
    """
    missing = [category for category in CATEGORIES if category not in weights]
    if missing:
        raise ValidationError(f"Criteria is missing weights for: {', '.join(missing)}")

    cleaned = {}
    for category in CATEGORIES:
        value = weights[category]
        if value is None or value < 0:
            raise ValidationError(f"Weight for {category} must be a non-negative number")
        cleaned[category] = float(value)

    total = sum(cleaned.values())
    if abs(total - 100.0) > WEIGHT_EPSILON:
        raise ValidationError(f"Criteria weights must sum to 100, got {total:g}")

    return cleaned


def phrase_hits(phrases: Iterable[str], transcript_text: str) -> Dict[str, bool]:
    """Case-insensitive substring presence per phrase"""
    haystack = (transcript_text or "").casefold()
    return {phrase: phrase.casefold() in haystack for phrase in phrases}


class ScoreCardBuilder:
    """Derives a weighted scorecard from an analysis and a rubric.

    A pure function of its inputs: the same analysis, criteria and transcript
    always yield the same ScoreCardData.
    """

    def build(self, analysis, criteria=None, transcript_text: str = "") -> ScoreCardData:
        """
        Build a scorecard

        Args:
            analysis: object exposing the four category scores as attributes
                (AnalysisResult or the Analysis model)
            criteria: Criteria model or schema; None means equal weights
            transcript_text: transcript the phrase rules are checked against

        Returns:
            ScoreCardData
        """
        if criteria is None:
            weights = dict(EQUAL_WEIGHTS)
            required, prohibited = [], []
            criteria_id = None
        else:
            weights = validate_weights(criteria.weights)
            required = list(criteria.required_phrases or [])
            prohibited = list(criteria.prohibited_phrases or [])
            criteria_id = getattr(criteria, "id", None)

        contributions = {}
        for category in CATEGORIES:
            score = getattr(analysis, category)
            if score is None:
                raise ValidationError(f"Analysis has no {category} score")
            contributions[category] = round(float(score) * weights[category] / 100.0, 4)

        overall = round(sum(contributions.values()), 2)

        return ScoreCardData(
            overall_score=overall,
            contributions=contributions,
            weights=weights,
            required_phrases=phrase_hits(required, transcript_text),
            prohibited_phrases=phrase_hits(prohibited, transcript_text),
            criteria_id=criteria_id,
            notes=getattr(analysis, "summary", "") or ""
        )


scorecard_builder = ScoreCardBuilder()
