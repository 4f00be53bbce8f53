"""Tunable thresholds and weights for the loop detector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from strategist.errors import InvalidArgumentError

MAX_WINDOW_SIZE = 20


@dataclass
class LoopDetectionOptions:
    """Loop detection configuration.

    The four score weights feed the blended confidence that is only computed
    when none of the early-exit gates fired; they must sum to 1.0.
    """

    window_size: int = 5
    similarity_threshold: float = 0.85
    oscillation_threshold: float = 0.8
    recovery_threshold: float = 0.7
    repetition_weight: float = 0.4
    semantic_weight: float = 0.3
    no_progress_weight: float = 0.2
    frustration_weight: float = 0.1
    enabled: bool = True

    @classmethod
    def development(cls) -> LoopDetectionOptions:
        """Smaller window and lower thresholds for local runs."""
        return cls(window_size=3, similarity_threshold=0.80, recovery_threshold=0.6)

    @classmethod
    def production(cls) -> LoopDetectionOptions:
        return cls(window_size=5, similarity_threshold=0.85, recovery_threshold=0.7)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoopDetectionOptions:
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        options = cls(**known)
        options.validate()
        return options

    def errors(self) -> list[str]:
        """Return every validation problem, empty when the options are usable."""
        problems: list[str] = []
        if self.window_size <= 0:
            problems.append("window_size must be greater than 0")
        if self.window_size > MAX_WINDOW_SIZE:
            problems.append(
                f"window_size should not exceed {MAX_WINDOW_SIZE} to avoid excessive computation"
            )
        for name in ("similarity_threshold", "oscillation_threshold", "recovery_threshold"):
            value = getattr(self, name)
            if not 0.0 < value < 1.0:
                problems.append(f"{name} must be between 0 and 1 (exclusive), got {value}")

        weights = (
            self.repetition_weight,
            self.semantic_weight,
            self.no_progress_weight,
            self.frustration_weight,
        )
        if any(w < 0.0 for w in weights):
            problems.append("score weights cannot be negative")
        total = sum(weights)
        if abs(total - 1.0) > 0.001:
            problems.append(f"score weights must sum to 1.0 (current sum: {total:.3f})")
        return problems

    def validate(self) -> None:
        problems = self.errors()
        if problems:
            raise InvalidArgumentError("; ".join(problems))
