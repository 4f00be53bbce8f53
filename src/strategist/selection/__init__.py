"""
Adaptive Agent Selection

Thompson Sampling over per-(agent, category) Beta beliefs.

Core Components:
- models: AgentBelief, AgentOutcome, TaskFeatures, selection context/result
- belief_store: BeliefStore contract and the striped-lock in-memory store
- features: keyword task classifier and complexity estimate
- priors: prior factories for unobserved agents
- selector: plain and feature-contextual Thompson Sampling selectors
"""

from .belief_store import BeliefStore, InMemoryBeliefStore
from .features import (
    CATEGORY_PRIORITY,
    KeywordTaskFeatureExtractor,
    classify_task_category,
    estimate_complexity,
)
from .models import (
    DEFAULT_PRIOR_ALPHA,
    DEFAULT_PRIOR_BETA,
    AgentBelief,
    AgentOutcome,
    AgentSelectionContext,
    AgentSelectionResult,
    TaskCategory,
    TaskFeatures,
)
from .priors import BeliefPriorFactory, DefaultBeliefPriorFactory
from .selector import ContextualAgentSelector, ThompsonSamplingAgentSelector

__all__ = [
    # Models
    "DEFAULT_PRIOR_ALPHA",
    "DEFAULT_PRIOR_BETA",
    "AgentBelief",
    "AgentOutcome",
    "AgentSelectionContext",
    "AgentSelectionResult",
    "TaskCategory",
    "TaskFeatures",
    # Store
    "BeliefStore",
    "InMemoryBeliefStore",
    # Features
    "CATEGORY_PRIORITY",
    "KeywordTaskFeatureExtractor",
    "classify_task_category",
    "estimate_complexity",
    # Priors
    "BeliefPriorFactory",
    "DefaultBeliefPriorFactory",
    # Selectors
    "ContextualAgentSelector",
    "ThompsonSamplingAgentSelector",
]
