"""Loop types, recovery strategies and the detection result."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class LoopType(StrEnum):
    EXACT_REPETITION = "ExactRepetition"
    SEMANTIC_REPETITION = "SemanticRepetition"
    OSCILLATION = "Oscillation"
    NO_PROGRESS = "NoProgress"


class RecoveryStrategy(StrEnum):
    """What the engine should do about a detected loop."""

    BACKTRACK = "Backtrack"  # return to an earlier checkpoint
    REPLAN = "Replan"  # rebuild the plan for the remaining work
    ESCALATE = "Escalate"  # hand off to a human or supervisor


DEFAULT_STRATEGIES: dict[LoopType, RecoveryStrategy] = {
    LoopType.EXACT_REPETITION: RecoveryStrategy.BACKTRACK,
    LoopType.SEMANTIC_REPETITION: RecoveryStrategy.REPLAN,
    LoopType.OSCILLATION: RecoveryStrategy.ESCALATE,
    LoopType.NO_PROGRESS: RecoveryStrategy.REPLAN,
}


def default_strategy(loop_type: LoopType) -> RecoveryStrategy:
    return DEFAULT_STRATEGIES[loop_type]


@dataclass(frozen=True)
class LoopDetectionResult:
    """Outcome of one loop check.

    ``score`` is the signal that decided the result (the gate score, or the
    blended confidence when no gate fired); ``confidence`` is the blended
    score whenever it was computed and equals ``score`` otherwise.
    """

    is_loop: bool
    score: float
    confidence: float
    message: str
    strategy: RecoveryStrategy | None = None
    loop_type: LoopType | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"score must be in [0.0, 1.0], got {self.score}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {self.confidence}")
        if self.is_loop and (self.strategy is None or self.loop_type is None):
            raise ValueError("a detected loop needs both loop_type and strategy")

    @classmethod
    def no_loop(cls, message: str = "No loop detected", score: float = 0.0) -> LoopDetectionResult:
        return cls(is_loop=False, score=score, confidence=score, message=message)

    @classmethod
    def detected(
        cls,
        loop_type: LoopType,
        score: float,
        strategy: RecoveryStrategy | None = None,
        confidence: float | None = None,
        message: str | None = None,
    ) -> LoopDetectionResult:
        return cls(
            is_loop=True,
            score=score,
            confidence=score if confidence is None else confidence,
            message=message or f"{loop_type.value} loop detected (score={score:.2f})",
            strategy=strategy or default_strategy(loop_type),
            loop_type=loop_type,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_loop": self.is_loop,
            "score": round(self.score, 4),
            "confidence": round(self.confidence, 4),
            "strategy": self.strategy.value if self.strategy else None,
            "loop_type": self.loop_type.value if self.loop_type else None,
            "message": self.message,
        }
