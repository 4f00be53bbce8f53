"""
Loop Detection

Gate-based detection of repetition, stalls and oscillation in execution
history, with an optional semantic similarity check.
"""

from .detector import (
    LoopDetector,
    frustration_score,
    no_progress_score,
    oscillation_score,
    repetition_score,
)
from .options import LoopDetectionOptions
from .results import LoopDetectionResult, LoopType, RecoveryStrategy, default_strategy
from .similarity import (
    EmbeddingSimilarityCalculator,
    LexicalSimilarityCalculator,
    SemanticSimilarityCalculator,
)

__all__ = [
    # Detector
    "LoopDetector",
    "LoopDetectionOptions",
    "frustration_score",
    "no_progress_score",
    "oscillation_score",
    "repetition_score",
    # Results
    "LoopDetectionResult",
    "LoopType",
    "RecoveryStrategy",
    "default_strategy",
    # Similarity
    "EmbeddingSimilarityCalculator",
    "LexicalSimilarityCalculator",
    "SemanticSimilarityCalculator",
]
