"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class SimulationConfig(BaseModel):
    """Batch runner defaults."""

    total_games: int = 1000
    strategies: list[str] = ["stay", "switch"]
    chunk_size: int = 100
    player_choice: int | None = 0  # None draws the first pick per trial
    seed: int | None = None
    chunk_delay_secs: float = 0.0


class AnalysisConfig(BaseModel):
    """Statistics engine thresholds."""

    confidence_levels: list[float] = [0.95, 0.99]
    significance_level: float = 0.05
    stability_threshold: float = 0.05
    stability_window_fraction: float = 0.1
    min_stability_window: int = 10
    milestone_thresholds: list[float] = [0.10, 0.05, 0.01]
    lln_min_games: int = 100
    lln_demonstration_games: int = 1000
    lln_close_threshold: float = 0.10


class ExportConfig(BaseModel):
    """Exporter configuration."""

    default_format: str = "json"
    json_indent: int | None = 2  # None for compact output
    csv_precision: int = 4


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    simulation: SimulationConfig = SimulationConfig()
    analysis: AnalysisConfig = AnalysisConfig()
    export: ExportConfig = ExportConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
