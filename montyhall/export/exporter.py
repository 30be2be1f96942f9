"""Exporter — serialize a SimulationResult to JSON or CSV strings."""

from __future__ import annotations

import csv
import io

import structlog

from montyhall.core.config import ExportConfig
from montyhall.core.types import SimulationResult
from montyhall.export.exceptions import NoDataError, UnsupportedFormatError

logger = structlog.get_logger(__name__)

CSV_HEADER: tuple[str, ...] = (
    "Game",
    "Strategy",
    "PlayerChoice",
    "HostRevealed",
    "FinalChoice",
    "CarDoor",
    "Won",
    "WinRate",
)

SUPPORTED_FORMATS: tuple[str, ...] = ("json", "csv")


class Exporter:
    """Renders results in the two transfer formats.

    JSON is a full structural dump that :meth:`load_json` reads back into
    an equal :class:`SimulationResult`.  CSV has one row per trial.
    """

    def __init__(self, config: ExportConfig | None = None) -> None:
        self._config = config or ExportConfig()

    def export(self, result: SimulationResult | None, fmt: str | None = None) -> str:
        """Serialize *result*; *fmt* is case-insensitive."""
        _require_result(result)
        token = (fmt or self._config.default_format).strip().lower()
        if token == "json":
            payload = self.to_json(result)
        elif token == "csv":
            payload = self.to_csv(result)
        else:
            raise UnsupportedFormatError(f"Unsupported export format: {fmt}")

        logger.info("export_completed", format=token, chars=len(payload))
        return payload

    def to_json(self, result: SimulationResult | None) -> str:
        _require_result(result)
        return result.model_dump_json(indent=self._config.json_indent)

    @staticmethod
    def load_json(payload: str) -> SimulationResult:
        return SimulationResult.model_validate_json(payload)

    def to_csv(self, result: SimulationResult | None) -> str:
        """One row per trial, strategies in run order.

        ``WinRate`` is the cumulative win rate after that trial.
        """
        _require_result(result)
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(CSV_HEADER)

        precision = self._config.csv_precision
        for strategy in result.strategies:
            batch = result.per_strategy.get(strategy)
            if batch is None:
                continue
            for trial, point in zip(batch.trials, batch.win_rate_history, strict=True):
                writer.writerow((
                    point.game_number,
                    str(strategy),
                    trial.player_choice,
                    trial.host_revealed_door,
                    trial.final_choice,
                    trial.car_door,
                    "true" if trial.won else "false",
                    f"{point.win_rate:.{precision}f}",
                ))

        return buf.getvalue()


def _require_result(result: SimulationResult | None) -> None:
    if result is None:
        raise NoDataError("No simulation results to export")
