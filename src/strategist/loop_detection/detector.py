"""
Loop Detector — spots non-convergent execution histories

Looks at the most recent ``window_size`` progress entries and runs a series of
gates, cheapest first. The first gate that fires decides the result and the
later, costlier ones are skipped:

1. Exact repetition: share of the window taken by the most common action.
2. No progress: share of entries that made no progress or repeat a
   neighbour's output verbatim.
3. Oscillation: best period-p self-match of the action sequence.
4. Semantic repetition: one call to the similarity collaborator.

When no gate fires the four signals (plus executor frustration) are blended
into a weighted confidence; a blend at or above the recovery threshold still
reports a loop of whichever signal dominated.

Usage:
    detector = LoopDetector(LoopDetectionOptions.production())
    result = await detector.detect(ledger.recent_entries(5))
    if result.is_loop:
        print(result.strategy)
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from strategist.ledgers.models import ProgressEntry
from strategist.ledgers.progress_ledger import ProgressLedger

from .options import LoopDetectionOptions
from .results import LoopDetectionResult, LoopType, default_strategy
from .similarity import LexicalSimilarityCalculator, SemanticSimilarityCalculator

logger = logging.getLogger(__name__)

# Tolerance for the "every entry" gates
EPSILON = 1e-9


def repetition_score(actions: Sequence[str]) -> float:
    """Count of the most common action divided by the window length."""
    if not actions:
        return 0.0
    return max(Counter(actions).values()) / len(actions)


def no_progress_score(entries: Sequence[ProgressEntry]) -> float:
    """Share of entries that are stalled.

    An entry is stalled when it reports no progress, or when its non-empty
    output is identical to the output of the entry before or after it.
    """
    n = len(entries)
    if n == 0:
        return 0.0
    stalled = 0
    for i, entry in enumerate(entries):
        if not entry.progress_made:
            stalled += 1
            continue
        output = entry.output
        if not output:
            continue
        if (i > 0 and entries[i - 1].output == output) or (
            i < n - 1 and entries[i + 1].output == output
        ):
            stalled += 1
    return stalled / n


def oscillation_score(actions: Sequence[str]) -> float:
    """Max over periods p in [2, n//2] of the share of i in [p, n) with a[i] == a[i-p]."""
    interned: dict[str, int] = {}
    ids = [interned.setdefault(a, len(interned)) for a in actions]
    n = len(ids)

    best = 0.0
    for period in range(2, n // 2 + 1):
        positions = n - period
        matches = sum(1 for i in range(period, n) if ids[i] == ids[i - period])
        best = max(best, matches / positions)
        if best >= 1.0:
            break
    return best


def frustration_score(entries: Sequence[ProgressEntry]) -> float:
    """Share of entries whose executor signalled failure or asked for help."""
    if not entries:
        return 0.0
    frustrated = sum(1 for e in entries if e.signal is not None and e.signal.is_frustrated)
    return frustrated / len(entries)


class LoopDetector:
    """Gate-based loop detection over a window of progress entries."""

    def __init__(
        self,
        options: LoopDetectionOptions | None = None,
        similarity: SemanticSimilarityCalculator | None = None,
    ) -> None:
        self.options = options or LoopDetectionOptions()
        self.options.validate()
        self.similarity = similarity or LexicalSimilarityCalculator()

    async def _semantic_score(self, window: Sequence[ProgressEntry]) -> float:
        outputs = [e.output for e in window if e.output]
        if len(outputs) < 2:
            return 0.0
        try:
            score = await self.similarity.max_similarity(outputs)
        except Exception as exc:
            logger.warning(
                "Similarity check failed (%s: %s), treating semantic score as 0.0",
                type(exc).__name__,
                exc,
            )
            return 0.0
        return max(0.0, min(1.0, score))

    async def detect(self, entries: Sequence[ProgressEntry]) -> LoopDetectionResult:
        """
        Decide whether the recent history is looping.

        Args:
            entries: Progress entries, oldest first. Only the last
                ``window_size`` are examined.

        Returns:
            LoopDetectionResult with the loop type and recovery strategy when a
            loop was found
        """
        opts = self.options
        if not opts.enabled:
            return LoopDetectionResult.no_loop("Loop detection disabled")
        if len(entries) < opts.window_size:
            return LoopDetectionResult.no_loop(
                f"Insufficient history: {len(entries)} of {opts.window_size} entries"
            )

        window = list(entries[-opts.window_size :])
        actions = [e.action for e in window]

        repetition = repetition_score(actions)
        logger.debug("Repetition score %.3f over %d entries", repetition, len(window))
        if repetition >= 1.0 - EPSILON:
            return LoopDetectionResult.detected(
                LoopType.EXACT_REPETITION,
                repetition,
                message=f"Action '{actions[0]}' repeated in all {len(window)} entries",
            )

        no_progress = no_progress_score(window)
        logger.debug("No-progress score %.3f", no_progress)
        if no_progress >= 1.0 - EPSILON:
            return LoopDetectionResult.detected(
                LoopType.NO_PROGRESS,
                no_progress,
                message=f"No progress across the last {len(window)} entries",
            )

        oscillation = oscillation_score(actions)
        logger.debug("Oscillation score %.3f", oscillation)
        if oscillation >= opts.oscillation_threshold:
            return LoopDetectionResult.detected(
                LoopType.OSCILLATION,
                oscillation,
                message=f"Actions oscillate with a repeating period (score={oscillation:.2f})",
            )

        semantic = await self._semantic_score(window)
        logger.debug("Semantic score %.3f", semantic)
        if semantic >= opts.similarity_threshold:
            return LoopDetectionResult.detected(
                LoopType.SEMANTIC_REPETITION,
                semantic,
                message=f"Outputs are semantically repetitive (similarity={semantic:.2f})",
            )

        frustration = frustration_score(window)
        confidence = min(
            1.0,
            opts.repetition_weight * repetition
            + opts.semantic_weight * semantic
            + opts.no_progress_weight * no_progress
            + opts.frustration_weight * frustration,
        )
        logger.debug("Blended loop confidence %.3f (frustration %.3f)", confidence, frustration)

        if confidence < opts.recovery_threshold:
            return LoopDetectionResult.no_loop(score=confidence)

        signals = [
            (LoopType.EXACT_REPETITION, repetition),
            (LoopType.SEMANTIC_REPETITION, semantic),
            (LoopType.NO_PROGRESS, no_progress),
            (LoopType.OSCILLATION, oscillation),
        ]
        dominant, _ = max(signals, key=lambda s: s[1])
        return LoopDetectionResult.detected(
            dominant,
            confidence,
            strategy=default_strategy(dominant),
            confidence=confidence,
            message=(
                f"Combined loop signals reached {confidence:.2f}, "
                f"dominated by {dominant.value}"
            ),
        )

    async def detect_in_ledger(self, ledger: ProgressLedger) -> LoopDetectionResult:
        """Run ``detect`` over the ledger's most recent window."""
        return await self.detect(ledger.recent_entries(self.options.window_size))
