"""
Deal scoring and insight generation.

Rule-based close-probability scoring, insight narration and retraining.
"""

from app.ml.insight_generator import DealInsightGenerator
from app.ml.retrain import RetrainCoordinator

__all__ = ["DealInsightGenerator", "RetrainCoordinator"]
