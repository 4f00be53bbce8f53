"""Prior factories for agents that have no recorded observations yet."""

from __future__ import annotations

from abc import ABC, abstractmethod

from strategist.errors import InvalidArgumentError, require_identifier

from .models import DEFAULT_PRIOR_ALPHA, DEFAULT_PRIOR_BETA, AgentBelief, TaskFeatures


class BeliefPriorFactory(ABC):
    """Creates the starting belief for an unobserved (agent, category) pair."""

    @abstractmethod
    def create_prior(self, agent_id: str, features: TaskFeatures) -> AgentBelief:
        """Return a prior belief for ``agent_id`` in ``features.category``."""


class DefaultBeliefPriorFactory(BeliefPriorFactory):
    """Flat Beta(alpha, beta) prior, identical for every agent."""

    def __init__(
        self,
        alpha: float = DEFAULT_PRIOR_ALPHA,
        beta: float = DEFAULT_PRIOR_BETA,
    ) -> None:
        if alpha <= 0.0:
            raise InvalidArgumentError(f"alpha must be > 0.0, got {alpha}")
        if beta <= 0.0:
            raise InvalidArgumentError(f"beta must be > 0.0, got {beta}")
        self.alpha = alpha
        self.beta = beta

    def create_prior(self, agent_id: str, features: TaskFeatures) -> AgentBelief:
        require_identifier(agent_id, "agent_id")
        return AgentBelief.create_prior(
            agent_id,
            features.category.value,
            alpha=self.alpha,
            beta=self.beta,
        )
