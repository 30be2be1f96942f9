"""BatchRunner — chunked, cancellable execution of many trials."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence

import structlog

from montyhall.core.config import SimulationConfig
from montyhall.core.types import (
    THEORETICAL_WIN_RATES,
    ConvergencePoint,
    ProgressEvent,
    RunState,
    SimulationResult,
    Strategy,
    StrategyBatch,
)
from montyhall.simulation.aggregator import record_chunk
from montyhall.simulation.exceptions import AlreadyRunningError, InvalidArgumentError
from montyhall.simulation.trials import TrialGenerator, parse_strategy, validate_door

logger = structlog.get_logger(__name__)

# Callbacks may be plain functions or coroutine functions
ProgressCallback = Callable[[ProgressEvent], Awaitable[None] | None]
CompleteCallback = Callable[[SimulationResult], Awaitable[None] | None]
Scheduler = Callable[[], Awaitable[None]]

_TERMINAL_STATES = (RunState.COMPLETED, RunState.STOPPED, RunState.FAILED)


class BatchRunner:
    """Runs many trials per strategy in chunks, yielding between chunks.

    Each chunk is generated and aggregated synchronously, then progress
    is reported and the scheduler is awaited before the next chunk.
    :meth:`stop` is observed at the next chunk boundary, so a batch is
    always consistent up to its last finished chunk.

    Usage::

        runner = BatchRunner(TrialGenerator.seeded(42))
        result = await runner.run(1000, ["stay", "switch"], chunk_size=100)
        result.statistics = StatisticsEngine().analyze(result)
    """

    def __init__(
        self,
        generator: TrialGenerator | None = None,
        config: SimulationConfig | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._config = config or SimulationConfig()
        self._generator = generator or TrialGenerator.seeded(self._config.seed)
        self._scheduler = scheduler or self._default_yield
        self._state = RunState.IDLE
        self._stop_requested = False
        self._halted = False
        self._chunk_size = self._config.chunk_size
        self._result: SimulationResult | None = None

    # ── Properties ────────────────────────────────────────────────

    @property
    def state(self) -> RunState:
        """Current lifecycle state of the runner."""
        return self._state

    @property
    def running(self) -> bool:
        """Whether a run is in progress."""
        return self._state is RunState.RUNNING

    @property
    def current_result(self) -> SimulationResult | None:
        """The result of the active or most recent run, if any."""
        return self._result

    # ── Lifecycle ────────────────────────────────────────────────

    def stop(self) -> None:
        """Request cancellation at the next chunk boundary."""
        if self._state is not RunState.RUNNING:
            return
        self._stop_requested = True
        logger.info("batch_stop_requested")

    def reset(self) -> None:
        """Return a finished runner to ``idle`` and discard its result."""
        if self._state is RunState.RUNNING:
            raise AlreadyRunningError("Cannot reset while a run is in progress")
        self._state = RunState.IDLE
        self._stop_requested = False
        self._result = None

    async def run(
        self,
        total_games: int | None = None,
        strategies: Sequence[Strategy | str] | None = None,
        chunk_size: int | None = None,
        on_progress: ProgressCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> SimulationResult:
        """Run a batch, suspending on the scheduler after every chunk."""
        result = self._begin(total_games, strategies, chunk_size)
        try:
            for progress in self._chunks(result, self._chunk_size):
                if on_progress is not None:
                    await _maybe_await(on_progress(progress))
                await self._scheduler()
            self._finish(result)
        except asyncio.CancelledError:
            self._finish(result, RunState.STOPPED)
            raise
        except Exception:
            self._fail(result)
            raise

        # The run is settled; errors from here propagate without changing it
        if on_complete is not None:
            await _maybe_await(on_complete(result))
        return result

    def run_sync(
        self,
        total_games: int | None = None,
        strategies: Sequence[Strategy | str] | None = None,
        chunk_size: int | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        on_complete: Callable[[SimulationResult], None] | None = None,
    ) -> SimulationResult:
        """Run a batch without suspending between chunks.

        Callbacks must be plain functions; there is no loop to await them on.
        """
        for cb in (on_progress, on_complete):
            if cb is not None and inspect.iscoroutinefunction(cb):
                raise InvalidArgumentError("run_sync() does not accept coroutine callbacks")

        result = self._begin(total_games, strategies, chunk_size)
        try:
            for progress in self._chunks(result, self._chunk_size):
                if on_progress is not None:
                    on_progress(progress)
            self._finish(result)
        except Exception:
            self._fail(result)
            raise

        if on_complete is not None:
            on_complete(result)
        return result

    # ── Internals ────────────────────────────────────────────────

    def _begin(
        self,
        total_games: int | None,
        strategies: Sequence[Strategy | str] | None,
        chunk_size: int | None,
    ) -> SimulationResult:
        if self._state is RunState.RUNNING:
            raise AlreadyRunningError(
                "Simulation already running. Stop current simulation first."
            )

        total = self._config.total_games if total_games is None else total_games
        size = self._config.chunk_size if chunk_size is None else chunk_size
        chosen = validate_strategies(
            self._config.strategies if strategies is None else strategies
        )
        _require_positive_int("total_games", total)
        _require_positive_int("chunk_size", size)
        if self._config.player_choice is not None:
            validate_door(self._config.player_choice)

        if self._state in _TERMINAL_STATES:
            self.reset()

        self._chunk_size = size
        self._stop_requested = False
        self._halted = False
        self._state = RunState.RUNNING
        self._result = SimulationResult(
            total_games=total,
            strategies=chosen,
            per_strategy={s: StrategyBatch(strategy=s) for s in chosen},
            start_time=time.time(),
        )

        dropped = total % len(chosen)
        if dropped:
            logger.warning(
                "remainder_games_dropped",
                total_games=total,
                strategies=len(chosen),
                dropped=dropped,
            )
        logger.info(
            "batch_started",
            total_games=total,
            strategies=[str(s) for s in chosen],
            chunk_size=size,
        )
        return self._result

    def _chunks(self, result: SimulationResult, chunk_size: int) -> Iterator[ProgressEvent]:
        """Generate and aggregate one chunk per step.

        Suspends after each chunk with its progress event; the stop flag
        is checked when resumed, before the next chunk starts.
        """
        games_per_strategy = result.total_games // len(result.strategies)
        completed = 0

        for strategy in result.strategies:
            batch = result.per_strategy[strategy]
            theoretical = THEORETICAL_WIN_RATES[strategy]

            for start in range(0, games_per_strategy, chunk_size):
                if self._stop_requested:
                    self._halted = True
                    return

                count = min(chunk_size, games_per_strategy - start)
                trials = self._generator.generate_chunk(
                    strategy, count, self._config.player_choice
                )
                completed += record_chunk(batch, trials)

                last = batch.win_rate_history[-1]
                result.convergence_series.append(
                    ConvergencePoint(
                        game_number=last.game_number,
                        strategy=strategy,
                        win_rate=last.win_rate,
                        cumulative_wins=last.cumulative_wins,
                        theoretical=theoretical,
                    )
                )
                logger.debug(
                    "batch_chunk_completed",
                    strategy=str(strategy),
                    played=batch.played,
                    win_rate=last.win_rate,
                )

                yield ProgressEvent(
                    completed=completed,
                    total=result.total_games,
                    percentage=completed / result.total_games * 100,
                    strategy=strategy,
                )

    def _finish(self, result: SimulationResult, state: RunState | None = None) -> None:
        if state is None:
            state = RunState.STOPPED if self._halted else RunState.COMPLETED
        result.end_time = time.time()
        result.duration = result.end_time - result.start_time
        result.state = state
        self._state = state
        self._stop_requested = False

        event = "batch_stopped" if state is RunState.STOPPED else "batch_completed"
        logger.info(
            event,
            games_played=result.games_played,
            duration_secs=round(result.duration, 3),
            summary=result.summary(),
        )

    def _fail(self, result: SimulationResult) -> None:
        result.end_time = time.time()
        result.duration = result.end_time - result.start_time
        result.state = RunState.FAILED
        self._state = RunState.FAILED
        self._stop_requested = False
        logger.exception("batch_failed", games_played=result.games_played)

    async def _default_yield(self) -> None:
        await asyncio.sleep(self._config.chunk_delay_secs)


def validate_strategies(strategies: Sequence[Strategy | str]) -> list[Strategy]:
    """Validate a non-empty, duplicate-free subset of {stay, switch}."""
    if isinstance(strategies, str) or not strategies:
        raise InvalidArgumentError(
            f"strategies must be a non-empty list of 'stay'/'switch', got {strategies!r}"
        )
    chosen = [parse_strategy(s) for s in strategies]
    if len(set(chosen)) != len(chosen):
        raise InvalidArgumentError(f"Duplicate strategies: {list(strategies)!r}")
    return chosen


def _require_positive_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError(f"{name} must be a positive integer, got {value!r}")


async def _maybe_await(value: Awaitable[None] | None) -> None:
    if inspect.isawaitable(value):
        await value
