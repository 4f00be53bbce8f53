"""Configuration loading for strategist.

Settings come from ``~/.strategist/config.toml`` when present, then from
``STRATEGIST_*`` environment variables. Example file::

    [selection]
    seed = 42
    prior_alpha = 2.0
    prior_beta = 2.0

    [loop_detection]
    window_size = 5
    recovery_threshold = 0.7

    [similarity]
    embeddings_url = "http://localhost:8080/v1"
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from strategist.errors import InvalidArgumentError
from strategist.loop_detection.options import LoopDetectionOptions

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".strategist"
ENV_PREFIX = "STRATEGIST_"


@dataclass
class SelectionSettings:
    """Agent selection knobs."""

    seed: int | None = None
    prior_alpha: float = 2.0
    prior_beta: float = 2.0
    confidence_saturation: int = 20
    lock_stripes: int = 16

    def __post_init__(self) -> None:
        if self.prior_alpha <= 0.0 or self.prior_beta <= 0.0:
            raise InvalidArgumentError(
                f"prior must be positive, got alpha={self.prior_alpha}, beta={self.prior_beta}"
            )
        if self.confidence_saturation <= 0:
            raise InvalidArgumentError(
                f"confidence_saturation must be > 0, got {self.confidence_saturation}"
            )
        if self.lock_stripes <= 0:
            raise InvalidArgumentError(f"lock_stripes must be > 0, got {self.lock_stripes}")


@dataclass
class SimilaritySettings:
    """Where the optional embedding service lives."""

    embeddings_url: str | None = None
    model: str = "text-embedding-3-small"
    timeout: float = 10.0


@dataclass
class StrategistConfig:
    """Top-level configuration."""

    data_dir: Path = DEFAULT_DATA_DIR
    selection: SelectionSettings = field(default_factory=SelectionSettings)
    loop_detection: LoopDetectionOptions = field(default_factory=LoopDetectionOptions)
    similarity: SimilaritySettings = field(default_factory=SimilaritySettings)

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.toml"


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise InvalidArgumentError(f"[{name}] must be a table in config.toml")
    return value


def _apply_env(raw: dict[str, Any], environ: dict[str, str]) -> None:
    """Overlay STRATEGIST_* variables onto the parsed TOML tables."""
    seed = environ.get(f"{ENV_PREFIX}SEED")
    if seed:
        try:
            raw.setdefault("selection", {})["seed"] = int(seed)
        except ValueError as exc:
            raise InvalidArgumentError(
                f"{ENV_PREFIX}SEED must be an integer, got {seed!r}"
            ) from exc

    window = environ.get(f"{ENV_PREFIX}WINDOW_SIZE")
    if window:
        try:
            raw.setdefault("loop_detection", {})["window_size"] = int(window)
        except ValueError as exc:
            raise InvalidArgumentError(
                f"{ENV_PREFIX}WINDOW_SIZE must be an integer, got {window!r}"
            ) from exc

    url = environ.get(f"{ENV_PREFIX}EMBEDDINGS_URL")
    if url:
        raw.setdefault("similarity", {})["embeddings_url"] = url


def load_config(
    path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> StrategistConfig:
    """Load configuration from TOML plus environment overrides.

    Args:
        path: Explicit config file. Defaults to ``~/.strategist/config.toml``.
        environ: Environment mapping, ``os.environ`` when omitted.

    Returns:
        A validated StrategistConfig. A missing file yields defaults.
    """
    env = dict(os.environ) if environ is None else environ
    data_dir = Path(env.get(f"{ENV_PREFIX}HOME", DEFAULT_DATA_DIR))
    config_path = path or data_dir / "config.toml"

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as fh:
            try:
                raw = tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise InvalidArgumentError(f"Invalid TOML in {config_path}: {exc}") from exc
        logger.debug("Loaded configuration from %s", config_path)

    _apply_env(raw, env)

    selection = _section(raw, "selection")
    similarity = _section(raw, "similarity")
    return StrategistConfig(
        data_dir=data_dir,
        selection=SelectionSettings(
            **{k: v for k, v in selection.items() if k in SelectionSettings.__dataclass_fields__}
        ),
        loop_detection=LoopDetectionOptions.from_dict(_section(raw, "loop_detection")),
        similarity=SimilaritySettings(
            **{k: v for k, v in similarity.items() if k in SimilaritySettings.__dataclass_fields__}
        ),
    )
