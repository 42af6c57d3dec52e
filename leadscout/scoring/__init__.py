from leadscout.scoring.engine import RelatedCounts, ScoreSignal, ScoringResult, calculate_lead_score
from leadscout.scoring.rules import ScoringModelConfig, apply_model, classify_score, load_model

__all__ = [
    "RelatedCounts",
    "ScoreSignal",
    "ScoringResult",
    "calculate_lead_score",
    "ScoringModelConfig",
    "apply_model",
    "classify_score",
    "load_model",
]
