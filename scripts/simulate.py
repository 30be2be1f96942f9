#!/usr/bin/env python3
"""Batch simulation CLI — run many games and report convergence statistics.

Usage:
    python -m scripts.simulate
    python -m scripts.simulate --games 100000 --strategy switch --seed 7
    python -m scripts.simulate --games 2000 --format csv --output games.csv
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from montyhall.analysis.statistics import StatisticsEngine
from montyhall.core.config import Settings, load_settings
from montyhall.core.logging import setup_logging
from montyhall.core.types import ProgressEvent, SimulationResult, SimulationStatistics
from montyhall.export.exporter import Exporter
from montyhall.simulation.runner import BatchRunner
from montyhall.simulation.trials import TrialGenerator

logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Simulate the three-door game and compare against theory.",
    )
    parser.add_argument(
        "--games",
        type=int,
        default=None,
        help="Total games, split evenly across strategies (default: from config)",
    )
    parser.add_argument(
        "--strategy",
        action="append",
        dest="strategies",
        choices=["stay", "switch"],
        help="Strategy to simulate; repeat for both (default: from config)",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Games per chunk between progress reports (default: from config)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for a reproducible run",
    )
    parser.add_argument(
        "--format",
        default=None,
        help="Export format: json or csv",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the export here instead of stdout",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress lines",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    return parser.parse_args(argv)


def format_statistics(result: SimulationResult, stats: SimulationStatistics) -> str:
    """Plain-text report of the per-strategy analysis."""
    lines = [
        f"Games played: {result.games_played}/{result.total_games}"
        f" ({result.state}, {result.duration or 0.0:.2f}s)",
        "",
    ]
    for strategy, strat_stats in stats.per_strategy.items():
        desc = strat_stats.descriptive
        inf = strat_stats.inferential
        conv = strat_stats.convergence
        ci = inf.confidence_intervals.get("ci95")
        lines.append(f"{strategy.upper()}")
        lines.append(
            f"  win rate     {desc.observed_win_rate:.4f}"
            f" (theory {desc.theoretical_win_rate:.4f},"
            f" deviation {desc.percent_deviation:.2f} pts)"
        )
        if ci is not None:
            lines.append(
                f"  95% CI       [{ci.lower:.4f}, {ci.upper:.4f}]"
                f" contains theory: {ci.contains_theoretical}"
            )
        lines.append(
            f"  z-test       z={inf.hypothesis_test.z_score:.3f}"
            f" p={inf.hypothesis_test.p_value:.4f}"
            f" reject={inf.hypothesis_test.reject_null}"
        )
        lines.append(f"  sample size  {inf.sample_size.adequacy}")
        lines.append(
            f"  stable       {conv.stability.stable}"
            f" (first within 1%: game {conv.milestones.first_within_1_percent})"
        )
        lines.append("")

    if stats.comparison is not None:
        lines.append(
            f"Switch advantage: {stats.comparison.switch_advantage:+.4f}"
            f" (theory {stats.comparison.theoretical_advantage:+.4f})"
        )
    return "\n".join(lines)


def _progress_printer(quiet: bool):
    def on_progress(event: ProgressEvent) -> None:
        if not quiet:
            print(
                f"\r  {event.strategy:<6} {event.completed}/{event.total}"
                f" ({event.percentage:5.1f}%)",
                end="",
                file=sys.stderr,
            )

    return on_progress


async def run_simulation(args: argparse.Namespace, settings: Settings) -> SimulationResult:
    sim_config = settings.simulation
    if args.seed is not None:
        sim_config = sim_config.model_copy(update={"seed": args.seed})

    runner = BatchRunner(TrialGenerator.seeded(sim_config.seed), config=sim_config)
    result = await runner.run(
        total_games=args.games,
        strategies=args.strategies,
        chunk_size=args.chunk_size,
        on_progress=_progress_printer(args.quiet),
    )
    if not args.quiet:
        print(file=sys.stderr)
    return result


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings(args.config)
    setup_logging()

    result = asyncio.run(run_simulation(args, settings))

    result.statistics = StatisticsEngine(settings.analysis).analyze(result)
    print(format_statistics(result, result.statistics))

    if args.format or args.output:
        payload = Exporter(settings.export).export(result, args.format)
        if args.output:
            Path(args.output).write_text(payload)
            logger.info("export_written", path=args.output)
        else:
            print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
