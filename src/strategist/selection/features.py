"""Keyword-based task classification and complexity estimation.

Classification walks a fixed priority list and stops at the first category
with any keyword present, so a description mentioning both "code" and "data"
is always CodeGeneration. Matching is substring-based on the lowercased text.
"""

from __future__ import annotations

import re
from typing import Final

from .models import TaskCategory, TaskFeatures

# ═══════════════════════════════════════════════════════════════════════════
# KEYWORDS
# ═══════════════════════════════════════════════════════════════════════════

CATEGORY_KEYWORDS: Final[dict[TaskCategory, tuple[str, ...]]] = {
    TaskCategory.CODE_GENERATION: (
        "code",
        "program",
        "function",
        "debug",
        "algorithm",
        "implement",
        "refactor",
        "compile",
        "class",
        "method",
        "syntax",
        "programming",
    ),
    TaskCategory.DATA_ANALYSIS: (
        "analyze",
        "analysis",
        "statistics",
        "chart",
        "visualize",
        "visualization",
        "data",
        "graph",
        "plot",
        "metric",
        "trend",
        "correlation",
        "regression",
    ),
    TaskCategory.WEB_SEARCH: (
        "search",
        "lookup",
        "browse",
        "web",
        "internet",
        "url",
        "website",
        "online",
        "google",
    ),
    TaskCategory.FILE_OPERATION: (
        "file",
        "directory",
        "document",
        "folder",
        "path",
        "filesystem",
        "disk",
        "storage",
        "csv",
        "json",
        "xml",
        "pdf",
    ),
    TaskCategory.REASONING: (
        "reason",
        "plan",
        "decide",
        "evaluate",
        "compare",
        "assess",
        "judge",
        "logic",
        "think",
        "consider",
    ),
    TaskCategory.TEXT_GENERATION: (
        "summarize",
        "translate",
        "compose",
        "draft",
        "edit",
        "paraphrase",
        "rewrite",
        "generate text",
    ),
}

# First match wins. Do not reorder.
CATEGORY_PRIORITY: Final[tuple[TaskCategory, ...]] = (
    TaskCategory.CODE_GENERATION,
    TaskCategory.DATA_ANALYSIS,
    TaskCategory.WEB_SEARCH,
    TaskCategory.FILE_OPERATION,
    TaskCategory.REASONING,
    TaskCategory.TEXT_GENERATION,
)

# Word count at which complexity saturates at 1.0
MAX_COMPLEXITY_WORDS: Final = 50


def tokenize(text: str) -> list[str]:
    """Split on whitespace and punctuation."""
    normalized = re.sub(r"[^\w\s]", " ", text.lower())
    return [t for t in normalized.split() if t]


def _matched_keywords(lower_description: str, category: TaskCategory) -> list[str]:
    return [kw for kw in CATEGORY_KEYWORDS[category] if kw in lower_description]


def _classify(description: str | None) -> tuple[TaskCategory, tuple[str, ...]]:
    if description is None or not description.strip():
        return TaskCategory.GENERAL, ()

    lower = description.lower()
    for category in CATEGORY_PRIORITY:
        matched = _matched_keywords(lower, category)
        if matched:
            return category, tuple(matched)
    return TaskCategory.GENERAL, ()


def classify_task_category(description: str | None) -> TaskCategory:
    """Return the first category in priority order whose keywords appear."""
    category, _ = _classify(description)
    return category


def estimate_complexity(description: str | None) -> float:
    """Complexity in [0, 1], growing with word count.

    Descriptions shorter than five words always score below 0.3.
    """
    if description is None:
        return 0.0
    words = len(tokenize(description))
    return round(min(1.0, words / MAX_COMPLEXITY_WORDS), 3)


class KeywordTaskFeatureExtractor:
    """Deterministic feature extractor driven by fixed keyword sets."""

    def extract(self, description: str | None) -> TaskFeatures:
        """Extract category, complexity and matched keywords.

        Args:
            description: Free-text task description. Blank or None yields
                the default feature set.

        Returns:
            TaskFeatures for the description
        """
        if description is None or not description.strip():
            return TaskFeatures.default()

        category, matched = _classify(description)
        return TaskFeatures(
            category=category,
            complexity=estimate_complexity(description),
            matched_keywords=matched,
        )
