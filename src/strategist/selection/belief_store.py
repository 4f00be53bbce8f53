"""
Belief Store — Beta posteriors per (agent, task category)

The in-memory store keeps a primary map keyed by ``(agent_id, category)`` and
two secondary indices (by agent, by category) holding keys into it, so
listing by either dimension costs O(matches) no matter how many beliefs are
stored.

Locking is striped: every structure has its own array of locks, picked by
hash of the key. No code path holds two locks at once. Index entries are
written before the primary value, so any belief readable by key is already
reachable through both indices; index readers skip keys whose primary value
has not landed yet.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Hashable

from strategist.errors import InvalidArgumentError, require_identifier

from .models import DEFAULT_PRIOR_ALPHA, DEFAULT_PRIOR_BETA, AgentBelief, AgentOutcome

logger = logging.getLogger(__name__)

BeliefKey = tuple[str, str]

DEFAULT_LOCK_STRIPES = 16


def _make_key(agent_id: str, task_category: str) -> BeliefKey:
    return (
        require_identifier(agent_id, "agent_id"),
        require_identifier(task_category, "task_category"),
    )


class BeliefStore(ABC):
    """Async contract shared by the in-memory store and durable adapters."""

    # Prior for pairs with no recorded belief; selectors fall back to it too
    prior_alpha: float = DEFAULT_PRIOR_ALPHA
    prior_beta: float = DEFAULT_PRIOR_BETA

    @abstractmethod
    async def get_belief(self, agent_id: str, task_category: str) -> AgentBelief | None:
        """Return the belief for the pair, or a prior when none is stored.

        Durable adapters may return None for a missing key; selectors treat
        that like a prior.
        """

    @abstractmethod
    async def update_belief(
        self,
        agent_id: str,
        task_category: str,
        success: bool,
        confidence: float | None = None,
    ) -> AgentBelief:
        """Atomically apply one outcome, creating the belief from the prior."""

    @abstractmethod
    async def save_belief(self, belief: AgentBelief) -> None:
        """Insert or replace a belief."""

    @abstractmethod
    async def get_beliefs_for_agent(self, agent_id: str) -> list[AgentBelief]:
        """All beliefs recorded for an agent, across categories."""

    @abstractmethod
    async def get_beliefs_for_category(self, task_category: str) -> list[AgentBelief]:
        """All beliefs recorded for a category, across agents."""


class _LockStripes:
    """Fixed array of locks addressed by key hash."""

    def __init__(self, stripes: int) -> None:
        if stripes <= 0:
            raise InvalidArgumentError(f"stripes must be > 0, got {stripes}")
        self._locks = [threading.Lock() for _ in range(stripes)]

    def __call__(self, key: Hashable) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]


class InMemoryBeliefStore(BeliefStore):
    """Thread-safe in-process belief store with agent and category indices."""

    def __init__(
        self,
        prior_alpha: float = DEFAULT_PRIOR_ALPHA,
        prior_beta: float = DEFAULT_PRIOR_BETA,
        lock_stripes: int = DEFAULT_LOCK_STRIPES,
    ) -> None:
        if prior_alpha <= 0.0 or prior_beta <= 0.0:
            raise InvalidArgumentError(
                f"prior must be positive, got alpha={prior_alpha}, beta={prior_beta}"
            )
        self.prior_alpha = prior_alpha
        self.prior_beta = prior_beta

        self._beliefs: dict[BeliefKey, AgentBelief] = {}
        # dict used as an insertion-ordered set of keys
        self._by_agent: dict[str, dict[BeliefKey, None]] = {}
        self._by_category: dict[str, dict[BeliefKey, None]] = {}

        self._belief_locks = _LockStripes(lock_stripes)
        self._agent_locks = _LockStripes(lock_stripes)
        self._category_locks = _LockStripes(lock_stripes)

    def __len__(self) -> int:
        return len(self._beliefs)

    def _prior(self, agent_id: str, task_category: str) -> AgentBelief:
        return AgentBelief.create_prior(
            agent_id, task_category, alpha=self.prior_alpha, beta=self.prior_beta
        )

    def _index(self, key: BeliefKey) -> None:
        agent_id, task_category = key
        with self._agent_locks(agent_id):
            self._by_agent.setdefault(agent_id, {})[key] = None
        with self._category_locks(task_category):
            self._by_category.setdefault(task_category, {})[key] = None

    def _resolve(self, keys: list[BeliefKey]) -> list[AgentBelief]:
        beliefs = []
        for key in keys:
            belief = self._beliefs.get(key)
            if belief is not None:
                beliefs.append(belief)
        return beliefs

    async def get_belief(self, agent_id: str, task_category: str) -> AgentBelief:
        key = _make_key(agent_id, task_category)

        existing = self._beliefs.get(key)
        if existing is not None:
            return existing

        self._index(key)
        with self._belief_locks(key):
            belief = self._beliefs.get(key)
            if belief is None:
                belief = self._prior(agent_id, task_category)
                self._beliefs[key] = belief
        return belief

    async def update_belief(
        self,
        agent_id: str,
        task_category: str,
        success: bool,
        confidence: float | None = None,
    ) -> AgentBelief:
        key = _make_key(agent_id, task_category)
        outcome = AgentOutcome(success, confidence) if confidence is not None else None

        self._index(key)
        with self._belief_locks(key):
            current = self._beliefs.get(key) or self._prior(agent_id, task_category)
            if outcome is not None:
                updated = current.with_outcome(outcome)
            elif success:
                updated = current.with_success()
            else:
                updated = current.with_failure()
            self._beliefs[key] = updated

        logger.debug(
            "Belief %s updated: alpha=%.2f beta=%.2f n=%d",
            updated.id,
            updated.alpha,
            updated.beta,
            updated.observation_count,
        )
        return updated

    async def save_belief(self, belief: AgentBelief) -> None:
        key = belief.key
        self._index(key)
        with self._belief_locks(key):
            self._beliefs[key] = belief

    async def get_beliefs_for_agent(self, agent_id: str) -> list[AgentBelief]:
        require_identifier(agent_id, "agent_id")
        with self._agent_locks(agent_id):
            keys = list(self._by_agent.get(agent_id, ()))
        return self._resolve(keys)

    async def get_beliefs_for_category(self, task_category: str) -> list[AgentBelief]:
        require_identifier(task_category, "task_category")
        with self._category_locks(task_category):
            keys = list(self._by_category.get(task_category, ()))
        return self._resolve(keys)
