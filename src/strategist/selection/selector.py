"""
Agent Selector — Thompson Sampling over Beta beliefs

For every candidate the selector draws theta ~ Beta(alpha, beta) from the
candidate's belief for the task category and picks the largest draw. Agents
with little evidence have wide posteriors and still win occasionally, which
keeps exploring; well-observed strong agents win most of the time.

Belief fetches for all candidates are issued together and awaited as one
batch. A fetch that fails, times out or comes back empty falls back to the
prior for that candidate alone. Cancellation is never absorbed.

Usage:
    store = InMemoryBeliefStore()
    selector = ThompsonSamplingAgentSelector(store, seed=42)
    result = await selector.select_agent(context)
    await selector.record_outcome(result.selected_agent_id, result.task_category,
                                  AgentOutcome.succeeded())
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading

from strategist.errors import NoCandidatesError, require_identifier

from .belief_store import BeliefStore
from .features import KeywordTaskFeatureExtractor, classify_task_category
from .models import (
    CONFIDENCE_SATURATION,
    AgentBelief,
    AgentOutcome,
    AgentSelectionContext,
    AgentSelectionResult,
    TaskCategory,
    TaskFeatures,
)
from .priors import BeliefPriorFactory, DefaultBeliefPriorFactory

logger = logging.getLogger(__name__)

# Upper bound on a single belief fetch before the prior is substituted
FETCH_TIMEOUT = 5.0


class ThompsonSamplingAgentSelector:
    """Picks agents by sampling each candidate's Beta posterior.

    The pseudo-random source is seeded at construction, so two selectors
    built with the same seed over the same beliefs make the same choices.
    """

    def __init__(
        self,
        belief_store: BeliefStore,
        seed: int | None = None,
        confidence_saturation: int = CONFIDENCE_SATURATION,
        fetch_timeout: float = FETCH_TIMEOUT,
        prior_factory: BeliefPriorFactory | None = None,
    ) -> None:
        self.belief_store = belief_store
        self.prior_factory = prior_factory or DefaultBeliefPriorFactory(
            belief_store.prior_alpha, belief_store.prior_beta
        )
        self.seed = seed
        self.confidence_saturation = confidence_saturation
        self.fetch_timeout = fetch_timeout
        self._random = random.Random(seed)
        self._random_lock = threading.Lock()

    # ─── hooks overridden by the contextual variant ──────────────────────

    def _features(self, context: AgentSelectionContext) -> TaskFeatures | None:
        return None

    def _category(
        self, context: AgentSelectionContext, features: TaskFeatures | None
    ) -> TaskCategory:
        return classify_task_category(context.task_description)

    def _resolve_belief(
        self,
        agent_id: str,
        category: TaskCategory,
        fetched: AgentBelief | None,
        features: TaskFeatures | None,
    ) -> AgentBelief:
        if fetched is not None:
            return fetched
        return self.prior_factory.create_prior(
            agent_id, features or TaskFeatures.for_category(category)
        )

    # ─── selection ───────────────────────────────────────────────────────

    async def _fetch_belief(self, agent_id: str, category: TaskCategory) -> AgentBelief | None:
        try:
            return await asyncio.wait_for(
                self.belief_store.get_belief(agent_id, category.value),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Belief fetch for %s/%s timed out after %.1fs, using prior",
                agent_id,
                category.value,
                self.fetch_timeout,
            )
        except Exception as exc:
            logger.warning(
                "Belief fetch for %s/%s failed (%s: %s), using prior",
                agent_id,
                category.value,
                type(exc).__name__,
                exc,
            )
        return None

    def _sample_beta(self, alpha: float, beta: float) -> float:
        with self._random_lock:
            return self._random.betavariate(alpha, beta)

    async def select_agent(self, context: AgentSelectionContext) -> AgentSelectionResult:
        """
        Select the agent for one workflow step.

        Args:
            context: Step description plus available and excluded agents

        Returns:
            AgentSelectionResult for the highest sampled candidate

        Raises:
            NoCandidatesError: every available agent was excluded
        """
        candidates = context.candidates()
        if not candidates:
            raise NoCandidatesError("No available agents after applying exclusions")

        features = self._features(context)
        category = self._category(context, features)

        fetched = await asyncio.gather(
            *(self._fetch_belief(agent_id, category) for agent_id in candidates)
        )

        scored: list[tuple[float, str, AgentBelief]] = []
        for agent_id, raw in zip(candidates, fetched):
            belief = self._resolve_belief(agent_id, category, raw, features)
            theta = self._sample_beta(belief.alpha, belief.beta)
            scored.append((theta, agent_id, belief))

        best_theta, best_agent, best_belief = scored[0]
        for theta, agent_id, belief in scored[1:]:
            if theta > best_theta:
                best_theta, best_agent, best_belief = theta, agent_id, belief

        fallback = [
            agent_id
            for _, agent_id, _ in sorted(scored, key=lambda s: s[0], reverse=True)
            if agent_id != best_agent
        ]

        logger.debug(
            "Selected %s for %s/%s (theta=%.3f, %d candidates)",
            best_agent,
            context.step_name,
            category.value,
            best_theta,
            len(candidates),
        )

        return AgentSelectionResult(
            selected_agent_id=best_agent,
            task_category=category,
            sampled_theta=best_theta,
            selection_confidence=best_belief.confidence(self.confidence_saturation),
            features=features,
            candidate_count=len(candidates),
            fallback_agents=tuple(fallback),
        )

    async def record_outcome(
        self,
        agent_id: str,
        task_category: str,
        outcome: AgentOutcome,
    ) -> AgentBelief:
        """Fold a step outcome into the agent's belief for the category.

        A set ``outcome.confidence`` is applied as fractional credit, otherwise
        the outcome counts as one full success or failure.
        """
        require_identifier(agent_id, "agent_id")
        require_identifier(task_category, "task_category")
        return await self.belief_store.update_belief(
            agent_id,
            str(task_category),
            outcome.success,
            confidence=outcome.confidence,
        )


class ContextualAgentSelector(ThompsonSamplingAgentSelector):
    """Thompson Sampling with extracted features and configurable priors.

    Agents that already have observations keep their stored belief. Unobserved
    agents (no belief, a failed fetch, or zero observations) start from
    ``prior_factory.create_prior(agent_id, features)`` even when the store
    holds a zero-observation belief for them.
    """

    def __init__(
        self,
        belief_store: BeliefStore,
        feature_extractor: KeywordTaskFeatureExtractor | None = None,
        prior_factory: BeliefPriorFactory | None = None,
        seed: int | None = None,
        confidence_saturation: int = CONFIDENCE_SATURATION,
        fetch_timeout: float = FETCH_TIMEOUT,
    ) -> None:
        super().__init__(
            belief_store,
            seed=seed,
            confidence_saturation=confidence_saturation,
            fetch_timeout=fetch_timeout,
            prior_factory=prior_factory,
        )
        self.feature_extractor = feature_extractor or KeywordTaskFeatureExtractor()

    def _features(self, context: AgentSelectionContext) -> TaskFeatures:
        return self.feature_extractor.extract(context.task_description)

    def _category(
        self, context: AgentSelectionContext, features: TaskFeatures | None
    ) -> TaskCategory:
        if features is None:
            features = self._features(context)
        return features.category

    def _resolve_belief(
        self,
        agent_id: str,
        category: TaskCategory,
        fetched: AgentBelief | None,
        features: TaskFeatures | None,
    ) -> AgentBelief:
        if fetched is not None and fetched.observation_count > 0:
            return fetched
        return self.prior_factory.create_prior(
            agent_id, features or TaskFeatures.for_category(category)
        )
