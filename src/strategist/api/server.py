"""FastAPI server for programmatic strategist access."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any

import click
from fastapi import FastAPI

from strategist import __version__
from strategist.config import load_config
from strategist.errors import InvalidArgumentError, StrategistError
from strategist.ledgers import ProgressEntry, TaskEntry, TaskLedger
from strategist.loop_detection import EmbeddingSimilarityCalculator, LoopDetector
from strategist.selection import (
    AgentOutcome,
    AgentSelectionContext,
    ContextualAgentSelector,
    InMemoryBeliefStore,
    ThompsonSamplingAgentSelector,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Strategist API",
    version=__version__,
    description="Adaptive agent selection, loop detection and integrity ledgers",
)

_start_time = time.monotonic()
_config = load_config()
_store = InMemoryBeliefStore(
    _config.selection.prior_alpha,
    _config.selection.prior_beta,
    _config.selection.lock_stripes,
)
_selector = ThompsonSamplingAgentSelector(
    _store,
    seed=_config.selection.seed,
    confidence_saturation=_config.selection.confidence_saturation,
)
_contextual_selector = ContextualAgentSelector(
    _store,
    seed=_config.selection.seed,
    confidence_saturation=_config.selection.confidence_saturation,
)
_similarity = (
    EmbeddingSimilarityCalculator(
        _config.similarity.embeddings_url,
        model=_config.similarity.model,
        timeout=_config.similarity.timeout,
    )
    if _config.similarity.embeddings_url
    else None
)


def _error(exc: Exception) -> dict[str, Any]:
    code = exc.code if isinstance(exc, StrategistError) else "INVALID_ARGUMENT"
    return {"error": str(exc), "code": code}


@app.get("/api/health")
async def health() -> dict[str, Any]:
    """Health check."""
    uptime = time.monotonic() - _start_time
    return {
        "status": "ok",
        "version": __version__,
        "uptime_seconds": round(uptime, 1),
        "beliefs": len(_store),
    }


@app.post("/api/select")
async def select(request: dict[str, Any]) -> dict[str, Any]:
    """Pick an agent for a workflow step."""
    task = request.get("task", "")
    agents = request.get("agents") or []
    if not agents:
        return {"error": "agents is required", "code": "SELECTOR_NO_CANDIDATES"}

    selector = _contextual_selector if request.get("contextual") else _selector
    try:
        context = AgentSelectionContext(
            workflow_id=request.get("workflow_id", "api"),
            step_name=request.get("step_name", "select"),
            task_description=task,
            available_agents=agents,
            excluded_agents=request.get("excluded"),
        )
        result = await selector.select_agent(context)
    except StrategistError as exc:
        return _error(exc)
    return result.to_dict()


@app.post("/api/outcome")
async def outcome(request: dict[str, Any]) -> dict[str, Any]:
    """Report a step outcome back into the belief store."""
    if "success" not in request:
        return {"error": "success is required", "code": InvalidArgumentError.code}
    try:
        reported = AgentOutcome(
            success=bool(request["success"]),
            confidence=request.get("confidence"),
            duration=request.get("duration"),
            tokens_consumed=request.get("tokens_consumed"),
        )
        belief = await _selector.record_outcome(
            request.get("agent_id", ""),
            request.get("task_category", ""),
            reported,
        )
    except StrategistError as exc:
        return _error(exc)
    return belief.to_dict()


@app.get("/api/beliefs")
async def beliefs(agent_id: str | None = None, category: str | None = None) -> dict[str, Any]:
    """List beliefs for an agent or a task category."""
    if agent_id:
        found = await _store.get_beliefs_for_agent(agent_id)
    elif category:
        found = await _store.get_beliefs_for_category(category)
    else:
        return {"error": "agent_id or category is required", "code": InvalidArgumentError.code}
    return {"beliefs": [b.to_dict() for b in found], "count": len(found)}


@app.post("/api/loop")
async def loop(request: dict[str, Any]) -> dict[str, Any]:
    """Run loop detection over a list of progress entries."""
    options = _config.loop_detection
    if request.get("window_size") is not None:
        options = replace(options, window_size=request["window_size"])
    try:
        entries = [ProgressEntry.from_dict(e) for e in request.get("entries", [])]
        detector = LoopDetector(options, similarity=_similarity)
    except (KeyError, TypeError, ValueError) as exc:
        return _error(exc)
    result = await detector.detect(entries)
    return result.to_dict()


@app.post("/api/ledger")
async def ledger(request: dict[str, Any]) -> dict[str, Any]:
    """Build a task ledger and optionally verify a recorded hash."""
    try:
        tasks = [TaskEntry.from_dict(t) for t in request.get("tasks", [])]
        built = TaskLedger.create(request.get("original_request", ""), tasks)
    except (KeyError, TypeError, ValueError) as exc:
        return _error(exc)

    data = built.to_dict()
    data["ready_tasks"] = [t.task_id for t in built.ready_tasks()]
    data["is_complete"] = built.is_complete()
    recorded = request.get("content_hash")
    if recorded is not None:
        data["verified"] = recorded == built.content_hash
    return data


@click.command()
@click.option("--port", default=3850, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
def main(port: int, host: str) -> None:
    """Start the Strategist API server."""
    import uvicorn

    logger.info("Starting Strategist API on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)
