"""CLI entry point for strategist."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from strategist import __version__

if TYPE_CHECKING:
    from strategist.ledgers import ProgressEntry
    from strategist.loop_detection import LoopDetectionResult

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="strat")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose: bool) -> None:
    """Strategist — adaptive agent selection, loop detection and ledgers."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
            force=True,
        )


@main.command()
@click.argument("description")
def classify(description: str) -> None:
    """Classify a task description and estimate its complexity."""
    from strategist.selection import KeywordTaskFeatureExtractor

    features = KeywordTaskFeatureExtractor().extract(description)
    console.print(f"[bold]Category:[/bold] {features.category.value}")
    label = "simple" if features.is_simple else "complex" if features.is_complex else "moderate"
    console.print(f"[bold]Complexity:[/bold] {features.complexity:.3f} ({label})")
    if features.matched_keywords:
        console.print(f"[bold]Keywords:[/bold] {', '.join(features.matched_keywords)}")


def _parse_belief(raw: str) -> tuple[str, float, float]:
    """Parse ``AGENT=ALPHA,BETA``."""
    agent_id, sep, params = raw.partition("=")
    alpha_text, comma, beta_text = params.partition(",")
    if not sep or not comma or not agent_id.strip():
        raise click.BadParameter(f"expected AGENT=ALPHA,BETA, got {raw!r}", param_hint="--belief")
    try:
        return agent_id.strip(), float(alpha_text), float(beta_text)
    except ValueError as exc:
        raise click.BadParameter(
            f"alpha and beta must be numbers in {raw!r}", param_hint="--belief"
        ) from exc


@main.command()
@click.argument("description")
@click.option("--agent", "-a", "agents", multiple=True, required=True, help="Candidate agent id")
@click.option("--exclude", "-x", "excluded", multiple=True, help="Agent id to exclude")
@click.option("--belief", "beliefs", multiple=True, help="Seed a belief as AGENT=ALPHA,BETA")
@click.option("--seed", type=int, default=None, help="Random seed for reproducible draws")
@click.option("--contextual", is_flag=True, help="Use feature-based priors for unobserved agents")
def select(
    description: str,
    agents: tuple[str, ...],
    excluded: tuple[str, ...],
    beliefs: tuple[str, ...],
    seed: int | None,
    contextual: bool,
) -> None:
    """Pick an agent for a task with Thompson Sampling."""
    from strategist.config import load_config
    from strategist.errors import StrategistError
    from strategist.selection import (
        AgentBelief,
        AgentSelectionContext,
        AgentSelectionResult,
        ContextualAgentSelector,
        InMemoryBeliefStore,
        ThompsonSamplingAgentSelector,
        classify_task_category,
    )

    config = load_config()
    settings = config.selection
    store = InMemoryBeliefStore(settings.prior_alpha, settings.prior_beta, settings.lock_stripes)
    seed = settings.seed if seed is None else seed

    category = classify_task_category(description)
    prior_total = settings.prior_alpha + settings.prior_beta

    parsed = [_parse_belief(raw) for raw in beliefs]

    async def run() -> AgentSelectionResult:
        for agent_id, alpha, beta in parsed:
            await store.save_belief(
                AgentBelief(
                    agent_id=agent_id,
                    task_category=category.value,
                    alpha=alpha,
                    beta=beta,
                    observation_count=max(0, round(alpha + beta - prior_total)),
                )
            )
        selector_cls = ContextualAgentSelector if contextual else ThompsonSamplingAgentSelector
        selector = selector_cls(
            store, seed=seed, confidence_saturation=settings.confidence_saturation
        )
        context = AgentSelectionContext(
            workflow_id="cli",
            step_name="select",
            task_description=description,
            available_agents=agents,
            excluded_agents=excluded or None,
        )
        return await selector.select_agent(context)

    try:
        result = asyncio.run(run())
    except StrategistError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    console.print(f"[bold]Category:[/bold] {result.task_category.value}")
    console.print(f"[bold green]Selected:[/bold green] {result.selected_agent_id}")
    console.print(f"[bold]Theta:[/bold] {result.sampled_theta:.3f}")
    console.print(f"[bold]Confidence:[/bold] {result.selection_confidence:.0%}")
    if result.fallback_agents:
        console.print(f"[bold]Fallback:[/bold] {', '.join(result.fallback_agents)}")


def _read_entries(path: Path) -> list[ProgressEntry]:
    from strategist.ledgers import ProgressEntry

    entries = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entries.append(ProgressEntry.from_dict(json.loads(line)))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise click.ClickException(f"{path}:{lineno}: invalid entry ({exc})") from exc
    return entries


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--window", type=int, default=None, help="Entries to examine (default from config)")
def detect(file: Path, window: int | None) -> None:
    """Check a JSON-lines execution history for loops."""
    from dataclasses import replace

    from strategist.config import load_config
    from strategist.errors import InvalidArgumentError
    from strategist.loop_detection import LoopDetector

    config = load_config()
    options = config.loop_detection
    if window is not None:
        options = replace(options, window_size=window)

    entries = _read_entries(file)
    try:
        detector = LoopDetector(options)
    except InvalidArgumentError as exc:
        raise click.BadParameter(str(exc), param_hint="--window") from exc
    result = asyncio.run(detector.detect(entries))
    _print_loop_result(result)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def ledger(file: Path) -> None:
    """Hash a task ledger from JSON and verify a recorded hash."""
    from strategist.ledgers import TaskEntry, TaskLedger

    try:
        data = json.loads(file.read_text(encoding="utf-8"))
        tasks = [TaskEntry.from_dict(t) for t in data.get("tasks", [])]
        built = TaskLedger.create(data.get("original_request", ""), tasks)
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as exc:
        raise click.ClickException(f"{file}: invalid ledger ({exc})") from exc

    console.print(f"[bold]Request:[/bold] {built.original_request}")
    console.print(f"[bold]Hash:[/bold] {built.content_hash}")

    if built.tasks:
        table = Table(title="Tasks")
        table.add_column("Task ID", style="cyan")
        table.add_column("Description", max_width=40)
        table.add_column("Status", style="yellow")
        table.add_column("Priority")
        table.add_column("Depends On")
        for task in built.tasks:
            table.add_row(
                task.task_id,
                task.description[:40],
                task.status.value,
                str(task.priority),
                ", ".join(task.dependencies),
            )
        console.print(table)
        ready = [t.task_id for t in built.ready_tasks()]
        console.print(f"Ready: {', '.join(ready) if ready else 'none'}")

    recorded = data.get("content_hash")
    if recorded is None:
        return
    if recorded == built.content_hash:
        console.print("[green]Integrity verified.[/green]")
    else:
        console.print(f"[red]Integrity check failed:[/red] recorded {recorded}")
        raise SystemExit(1)


def _print_loop_result(result: LoopDetectionResult) -> None:
    """Print loop detection summary."""
    if not result.is_loop:
        console.print(f"[green]No loop[/green] (score {result.score:.2f})")
        console.print(f"[dim]{result.message}[/dim]")
        return

    console.print(f"[red]Loop detected:[/red] {result.loop_type.value}")
    console.print(f"Score: {result.score:.2f}")
    console.print(f"Strategy: {result.strategy.value}")
    console.print(result.message)
