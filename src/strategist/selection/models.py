"""
Selection Data Models

Immutable values exchanged between the belief store, feature extractor,
prior factory and agent selectors. Updates never mutate in place; every
``with_*`` method returns a new value.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from strategist.errors import InvalidArgumentError, require_identifier

DEFAULT_PRIOR_ALPHA = 2.0
DEFAULT_PRIOR_BETA = 2.0

# Observations needed before a selection is reported as fully confident
CONFIDENCE_SATURATION = 20

SIMPLE_THRESHOLD = 0.3
COMPLEX_THRESHOLD = 0.7


class TaskCategory(StrEnum):
    """Coarse task categories used to partition agent beliefs."""

    GENERAL = "General"
    CODE_GENERATION = "CodeGeneration"
    DATA_ANALYSIS = "DataAnalysis"
    WEB_SEARCH = "WebSearch"
    FILE_OPERATION = "FileOperation"
    REASONING = "Reasoning"
    TEXT_GENERATION = "TextGeneration"


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise InvalidArgumentError(f"{name} must be in [0.0, 1.0], got {value}")


@dataclass(frozen=True)
class AgentOutcome:
    """Outcome of one step executed by an agent."""

    success: bool
    confidence: float | None = None
    duration: float | None = None  # seconds
    tokens_consumed: int | None = None

    def __post_init__(self) -> None:
        if self.confidence is not None:
            _check_unit_interval("confidence", self.confidence)
        if self.duration is not None and self.duration < 0.0:
            raise InvalidArgumentError(f"duration must be >= 0.0, got {self.duration}")

    @classmethod
    def succeeded(
        cls,
        confidence: float | None = None,
        duration: float | None = None,
        tokens_consumed: int | None = None,
    ) -> AgentOutcome:
        return cls(True, confidence, duration, tokens_consumed)

    @classmethod
    def failed(
        cls,
        confidence: float | None = None,
        duration: float | None = None,
        tokens_consumed: int | None = None,
    ) -> AgentOutcome:
        return cls(False, confidence, duration, tokens_consumed)

    @property
    def credit(self) -> float:
        """Success credit in [0, 1]; explicit confidence wins over the flag."""
        if self.confidence is not None:
            return self.confidence
        return 1.0 if self.success else 0.0


@dataclass(frozen=True)
class AgentBelief:
    """
    Beta(alpha, beta) posterior over an agent's success rate for one category.

    Starting from the prior, successes add to alpha and failures to beta, so
    alpha and beta never drop below the prior they were created with.
    """

    agent_id: str
    task_category: str
    alpha: float = DEFAULT_PRIOR_ALPHA
    beta: float = DEFAULT_PRIOR_BETA
    observation_count: int = 0
    updated_at: float = field(default_factory=time.time, compare=False)

    def __post_init__(self) -> None:
        require_identifier(self.agent_id, "agent_id")
        require_identifier(self.task_category, "task_category")
        if self.alpha <= 0.0:
            raise InvalidArgumentError(f"alpha must be > 0.0, got {self.alpha}")
        if self.beta <= 0.0:
            raise InvalidArgumentError(f"beta must be > 0.0, got {self.beta}")
        if self.observation_count < 0:
            raise InvalidArgumentError(
                f"observation_count must be >= 0, got {self.observation_count}"
            )

    @classmethod
    def create_prior(
        cls,
        agent_id: str,
        task_category: str,
        alpha: float = DEFAULT_PRIOR_ALPHA,
        beta: float = DEFAULT_PRIOR_BETA,
    ) -> AgentBelief:
        return cls(agent_id=agent_id, task_category=str(task_category), alpha=alpha, beta=beta)

    @property
    def id(self) -> str:
        return f"{self.agent_id}_{self.task_category}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.agent_id, self.task_category)

    @property
    def mean(self) -> float:
        return self.alpha / (self.alpha + self.beta)

    @property
    def variance(self) -> float:
        total = self.alpha + self.beta
        return (self.alpha * self.beta) / (total * total * (total + 1.0))

    def confidence(self, saturation: int = CONFIDENCE_SATURATION) -> float:
        """Evidence saturation: 0 with no observations, 1 at ``saturation``."""
        return min(1.0, self.observation_count / saturation)

    def with_success(self) -> AgentBelief:
        return replace(
            self,
            alpha=self.alpha + 1.0,
            observation_count=self.observation_count + 1,
            updated_at=time.time(),
        )

    def with_failure(self) -> AgentBelief:
        return replace(
            self,
            beta=self.beta + 1.0,
            observation_count=self.observation_count + 1,
            updated_at=time.time(),
        )

    def with_outcome(self, outcome: AgentOutcome) -> AgentBelief:
        """Apply fractional credit: alpha += c, beta += 1 - c."""
        credit = outcome.credit
        return replace(
            self,
            alpha=self.alpha + credit,
            beta=self.beta + (1.0 - credit),
            observation_count=self.observation_count + 1,
            updated_at=time.time(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "task_category": self.task_category,
            "alpha": self.alpha,
            "beta": self.beta,
            "observation_count": self.observation_count,
            "mean": round(self.mean, 4),
        }


@dataclass(frozen=True)
class TaskFeatures:
    """Features extracted from a task description."""

    category: TaskCategory = TaskCategory.GENERAL
    complexity: float = 0.0
    matched_keywords: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_unit_interval("complexity", self.complexity)

    @classmethod
    def default(cls) -> TaskFeatures:
        return cls()

    @classmethod
    def for_category(cls, category: TaskCategory) -> TaskFeatures:
        return cls(category=category)

    @property
    def is_simple(self) -> bool:
        return self.complexity < SIMPLE_THRESHOLD

    @property
    def is_complex(self) -> bool:
        return self.complexity > COMPLEX_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "complexity": self.complexity,
            "matched_keywords": list(self.matched_keywords),
            "is_simple": self.is_simple,
        }


@dataclass(frozen=True)
class AgentSelectionContext:
    """What the workflow engine knows when it asks for an agent."""

    workflow_id: str
    step_name: str
    task_description: str
    available_agents: tuple[str, ...]
    excluded_agents: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        require_identifier(self.workflow_id, "workflow_id")
        require_identifier(self.step_name, "step_name")
        # Accept any iterable from callers but store tuples
        object.__setattr__(self, "available_agents", tuple(self.available_agents))
        if self.excluded_agents is not None:
            object.__setattr__(self, "excluded_agents", tuple(self.excluded_agents))
        for agent_id in self.available_agents + (self.excluded_agents or ()):
            require_identifier(agent_id, "agent id")

    def candidates(self) -> list[str]:
        """Available minus excluded, in first-seen order without duplicates."""
        excluded = set(self.excluded_agents or ())
        seen: set[str] = set()
        result: list[str] = []
        for agent_id in self.available_agents:
            if agent_id in excluded or agent_id in seen:
                continue
            seen.add(agent_id)
            result.append(agent_id)
        return result


@dataclass(frozen=True)
class AgentSelectionResult:
    """Outcome of one Thompson Sampling draw."""

    selected_agent_id: str
    task_category: TaskCategory
    sampled_theta: float
    selection_confidence: float
    features: TaskFeatures | None = None
    candidate_count: int = 0
    fallback_agents: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_unit_interval("sampled_theta", self.sampled_theta)
        _check_unit_interval("selection_confidence", self.selection_confidence)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "selected_agent_id": self.selected_agent_id,
            "task_category": self.task_category.value,
            "sampled_theta": self.sampled_theta,
            "selection_confidence": self.selection_confidence,
            "candidate_count": self.candidate_count,
            "fallback_agents": list(self.fallback_agents),
        }
        if self.features is not None:
            data["features"] = self.features.to_dict()
        return data
