"""Tests for BatchRunner — chunking, progress, cancellation and state."""

from __future__ import annotations

import asyncio

import pytest

from montyhall.core.config import SimulationConfig
from montyhall.core.types import ProgressEvent, RunState, SimulationResult, Strategy
from montyhall.simulation.aggregator import verify_batch
from montyhall.simulation.exceptions import AlreadyRunningError, InvalidArgumentError
from montyhall.simulation.runner import BatchRunner, validate_strategies
from montyhall.simulation.trials import TrialGenerator


# ── Helpers ─────────────────────────────────────────────────────


def _runner(seed: int = 42, **config: object) -> BatchRunner:
    return BatchRunner(
        TrialGenerator.seeded(seed),
        config=SimulationConfig(**config),  # type: ignore[arg-type]
    )


class _Recorder:
    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []
        self.completed: list[SimulationResult] = []

    def on_progress(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def on_complete(self, result: SimulationResult) -> None:
        self.completed.append(result)


# ── Basic Runs ──────────────────────────────────────────────────


class TestBasicRun:
    async def test_single_chunk_scenario(self) -> None:
        runner = _runner()
        result = await runner.run(6, ["stay"], chunk_size=6)
        batch = result.batch(Strategy.STAY)
        assert batch.played == 6
        assert len(batch.trials) == 6
        assert result.state == RunState.COMPLETED
        assert runner.state == RunState.COMPLETED

    async def test_both_strategies_split_evenly(self) -> None:
        result = await _runner().run(1000, ["stay", "switch"], chunk_size=100)
        assert result.batch("stay").played == 500
        assert result.batch("switch").played == 500
        assert result.strategies == [Strategy.STAY, Strategy.SWITCH]

    async def test_batches_consistent(self) -> None:
        result = await _runner().run(2000, ["stay", "switch"], chunk_size=64)
        for batch in result.per_strategy.values():
            assert verify_batch(batch) == []
            assert batch.win_rate_history[-1].win_rate == batch.won / batch.played

    async def test_statistics_left_unset(self) -> None:
        result = await _runner().run(100, ["switch"], chunk_size=10)
        assert result.statistics is None

    async def test_timing_recorded(self) -> None:
        result = await _runner().run(100, ["switch"], chunk_size=10)
        assert result.end_time is not None
        assert result.duration is not None
        assert result.duration >= 0
        assert result.end_time >= result.start_time

    async def test_config_defaults_used(self) -> None:
        runner = _runner(total_games=40, strategies=["switch"], chunk_size=8)
        rec = _Recorder()
        result = await runner.run(on_progress=rec.on_progress)
        assert result.batch("switch").played == 40
        assert len(rec.events) == 5

    async def test_seeded_runs_reproduce(self) -> None:
        a = await _runner(seed=9).run(300, ["stay", "switch"], chunk_size=50)
        b = await _runner(seed=9).run(300, ["stay", "switch"], chunk_size=50)
        assert a.per_strategy == b.per_strategy

    async def test_random_player_choice(self) -> None:
        runner = _runner(player_choice=None)
        result = await runner.run(300, ["stay"], chunk_size=100)
        assert {t.player_choice for t in result.batch("stay").trials} == {0, 1, 2}

    async def test_fixed_player_choice(self) -> None:
        result = await _runner(player_choice=2).run(50, ["switch"], chunk_size=10)
        assert all(t.player_choice == 2 for t in result.batch("switch").trials)


# ── Remainder ───────────────────────────────────────────────────


class TestRemainder:
    async def test_remainder_games_dropped(self) -> None:
        result = await _runner().run(7, ["stay", "switch"], chunk_size=10)
        assert result.batch("stay").played == 3
        assert result.batch("switch").played == 3
        assert result.games_played == 6
        assert result.total_games == 7

    async def test_fewer_games_than_strategies(self) -> None:
        rec = _Recorder()
        result = await _runner().run(1, ["stay", "switch"], on_progress=rec.on_progress)
        assert result.games_played == 0
        assert rec.events == []
        assert result.state == RunState.COMPLETED


# ── Progress ────────────────────────────────────────────────────


class TestProgress:
    async def test_progress_per_chunk(self) -> None:
        rec = _Recorder()
        await _runner().run(250, ["stay"], chunk_size=100, on_progress=rec.on_progress)
        assert [e.completed for e in rec.events] == [100, 200, 250]
        assert all(e.total == 250 for e in rec.events)
        assert rec.events[-1].percentage == pytest.approx(100.0)
        assert rec.events[0].percentage == pytest.approx(40.0)

    async def test_progress_spans_strategies(self) -> None:
        rec = _Recorder()
        await _runner().run(
            400, ["stay", "switch"], chunk_size=100, on_progress=rec.on_progress,
        )
        assert [e.completed for e in rec.events] == [100, 200, 300, 400]
        assert [e.strategy for e in rec.events] == [
            Strategy.STAY, Strategy.STAY, Strategy.SWITCH, Strategy.SWITCH,
        ]

    async def test_async_callbacks_awaited(self) -> None:
        seen: list[int] = []
        done: list[RunState] = []

        async def on_progress(event: ProgressEvent) -> None:
            await asyncio.sleep(0)
            seen.append(event.completed)

        async def on_complete(result: SimulationResult) -> None:
            done.append(result.state)

        await _runner().run(
            30, ["stay"], chunk_size=10, on_progress=on_progress, on_complete=on_complete,
        )
        assert seen == [10, 20, 30]
        assert done == [RunState.COMPLETED]

    async def test_on_complete_receives_result(self) -> None:
        rec = _Recorder()
        result = await _runner().run(20, ["stay"], chunk_size=5, on_complete=rec.on_complete)
        assert rec.completed == [result]

    async def test_convergence_sampled_per_chunk(self) -> None:
        result = await _runner().run(300, ["stay", "switch"], chunk_size=50)
        series = result.convergence_series
        assert len(series) == 6
        assert [p.game_number for p in series] == [50, 100, 150, 50, 100, 150]
        assert series[0].theoretical == pytest.approx(1 / 3)
        assert series[-1].theoretical == pytest.approx(2 / 3)
        switch = result.batch("switch")
        assert series[-1].win_rate == switch.win_rate


# ── Scheduler ───────────────────────────────────────────────────


class TestScheduler:
    async def test_scheduler_called_between_chunks(self) -> None:
        calls: list[int] = []

        async def scheduler() -> None:
            calls.append(1)

        runner = BatchRunner(TrialGenerator.seeded(1), scheduler=scheduler)
        await runner.run(50, ["stay"], chunk_size=10)
        assert len(calls) == 5

    async def test_other_tasks_progress_during_run(self) -> None:
        ticks: list[int] = []

        async def ticker() -> None:
            for i in range(3):
                ticks.append(i)
                await asyncio.sleep(0)

        seen_at_completion: list[int] = []
        task = asyncio.create_task(ticker())
        await _runner().run(
            500, ["stay"], chunk_size=10,
            on_complete=lambda r: seen_at_completion.extend(ticks),
        )
        await task
        assert seen_at_completion == [0, 1, 2]


# ── Cancellation ────────────────────────────────────────────────


class TestStop:
    @pytest.mark.parametrize("k", [1, 3])
    async def test_stop_after_k_chunks(self, k: int) -> None:
        runner = _runner()

        def on_progress(event: ProgressEvent) -> None:
            if event.completed == k * 10:
                runner.stop()

        result = await runner.run(100, ["stay"], chunk_size=10, on_progress=on_progress)
        assert result.batch("stay").played == k * 10
        assert result.state == RunState.STOPPED
        assert runner.state == RunState.STOPPED
        assert verify_batch(result.batch("stay")) == []

    async def test_stop_skips_remaining_strategies(self) -> None:
        runner = _runner()
        result = await runner.run(
            100, ["stay", "switch"], chunk_size=10,
            on_progress=lambda e: runner.stop(),
        )
        assert result.batch("stay").played == 10
        assert result.batch("switch").played == 0

    async def test_stop_from_another_task(self) -> None:
        gate = asyncio.Event()

        async def scheduler() -> None:
            gate.set()
            await asyncio.sleep(0)

        runner = BatchRunner(TrialGenerator.seeded(3), scheduler=scheduler)
        run_task = asyncio.create_task(runner.run(1000, ["switch"], chunk_size=10))
        await gate.wait()
        runner.stop()
        result = await run_task
        assert result.state == RunState.STOPPED
        assert 0 < result.batch("switch").played < 1000
        assert result.batch("switch").played % 10 == 0

    async def test_stop_on_final_chunk_still_completes(self) -> None:
        runner = _runner()

        def on_progress(event: ProgressEvent) -> None:
            if event.completed == event.total:
                runner.stop()

        result = await runner.run(30, ["stay"], chunk_size=10, on_progress=on_progress)
        assert result.state == RunState.COMPLETED

    async def test_on_complete_called_when_stopped(self) -> None:
        runner = _runner()
        rec = _Recorder()
        await runner.run(
            50, ["stay"], chunk_size=10,
            on_progress=lambda e: runner.stop(), on_complete=rec.on_complete,
        )
        assert rec.completed[0].state == RunState.STOPPED

    def test_stop_when_idle_is_noop(self) -> None:
        runner = _runner()
        runner.stop()
        assert runner.state == RunState.IDLE


# ── State Machine ───────────────────────────────────────────────


class TestStateMachine:
    def test_initial_state_idle(self) -> None:
        runner = _runner()
        assert runner.state == RunState.IDLE
        assert runner.current_result is None

    async def test_already_running(self) -> None:
        gate = asyncio.Event()
        release = asyncio.Event()

        async def scheduler() -> None:
            gate.set()
            await release.wait()

        runner = BatchRunner(TrialGenerator.seeded(1), scheduler=scheduler)
        task = asyncio.create_task(runner.run(20, ["stay"], chunk_size=10))
        await gate.wait()
        assert runner.running
        with pytest.raises(AlreadyRunningError):
            await runner.run(20, ["stay"], chunk_size=10)
        with pytest.raises(AlreadyRunningError):
            runner.reset()
        release.set()
        result = await task
        assert result.batch("stay").played == 20

    async def test_reset_returns_to_idle(self) -> None:
        runner = _runner()
        await runner.run(10, ["stay"], chunk_size=5)
        runner.reset()
        assert runner.state == RunState.IDLE
        assert runner.current_result is None

    async def test_rerun_from_terminal_state(self) -> None:
        runner = _runner()
        first = await runner.run(10, ["stay"], chunk_size=5)
        second = await runner.run(20, ["switch"], chunk_size=5)
        assert first is not second
        assert runner.current_result is second
        assert second.batch("switch").played == 20
        assert runner.state == RunState.COMPLETED

    async def test_callback_error_fails_run(self) -> None:
        runner = _runner()

        def on_progress(event: ProgressEvent) -> None:
            raise RuntimeError("observer broke")

        with pytest.raises(RuntimeError, match="observer broke"):
            await runner.run(50, ["stay"], chunk_size=10, on_progress=on_progress)
        assert runner.state == RunState.FAILED
        assert runner.current_result is not None
        assert runner.current_result.state == RunState.FAILED
        assert runner.current_result.batch("stay").played == 10

    async def test_on_complete_error_keeps_completed(self) -> None:
        runner = _runner()

        def on_complete(result: SimulationResult) -> None:
            raise RuntimeError("consumer broke")

        with pytest.raises(RuntimeError, match="consumer broke"):
            await runner.run(20, ["stay"], chunk_size=10, on_complete=on_complete)
        assert runner.state == RunState.COMPLETED
        assert runner.current_result is not None
        assert runner.current_result.state == RunState.COMPLETED

    def test_on_complete_error_keeps_completed_sync(self) -> None:
        runner = _runner()

        def on_complete(result: SimulationResult) -> None:
            raise RuntimeError("consumer broke")

        with pytest.raises(RuntimeError):
            runner.run_sync(20, ["stay"], chunk_size=10, on_complete=on_complete)
        assert runner.state == RunState.COMPLETED

    async def test_cancel_during_on_complete_keeps_completed(self) -> None:
        entered = asyncio.Event()

        async def on_complete(result: SimulationResult) -> None:
            entered.set()
            await asyncio.Event().wait()

        runner = _runner()
        task = asyncio.create_task(
            runner.run(20, ["stay"], chunk_size=10, on_complete=on_complete)
        )
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert runner.state == RunState.COMPLETED
        assert runner.current_result is not None
        assert runner.current_result.state == RunState.COMPLETED
        assert runner.current_result.batch("stay").played == 20

    async def test_restart_after_failure(self) -> None:
        runner = _runner()

        def boom(event: ProgressEvent) -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await runner.run(20, ["stay"], chunk_size=10, on_progress=boom)
        runner.reset()
        result = await runner.run(20, ["stay"], chunk_size=10)
        assert result.state == RunState.COMPLETED

    async def test_cancelled_task_marks_stopped(self) -> None:
        release = asyncio.Event()
        gate = asyncio.Event()

        async def scheduler() -> None:
            gate.set()
            await release.wait()

        runner = BatchRunner(TrialGenerator.seeded(1), scheduler=scheduler)
        task = asyncio.create_task(runner.run(100, ["stay"], chunk_size=10))
        await gate.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert runner.state == RunState.STOPPED
        assert runner.current_result is not None
        assert runner.current_result.batch("stay").played == 10


# ── Validation ──────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("total", [0, -5, 2.5, True])
    async def test_bad_total_games(self, total: object) -> None:
        with pytest.raises(InvalidArgumentError):
            await _runner().run(total, ["stay"], chunk_size=10)  # type: ignore[arg-type]

    @pytest.mark.parametrize("size", [0, -1, 1.5])
    async def test_bad_chunk_size(self, size: object) -> None:
        with pytest.raises(InvalidArgumentError):
            await _runner().run(10, ["stay"], chunk_size=size)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "strategies",
        [[], ["hold"], ["stay", "stay"], "stay"],
    )
    async def test_bad_strategies(self, strategies: object) -> None:
        with pytest.raises(InvalidArgumentError):
            await _runner().run(10, strategies, chunk_size=10)  # type: ignore[arg-type]

    async def test_invalid_configured_door(self) -> None:
        with pytest.raises(InvalidArgumentError):
            await _runner(player_choice=5).run(10, ["stay"], chunk_size=10)

    async def test_validation_failure_keeps_idle(self) -> None:
        runner = _runner()
        with pytest.raises(InvalidArgumentError):
            await runner.run(0, ["stay"])
        assert runner.state == RunState.IDLE

    def test_validate_strategies_case_insensitive(self) -> None:
        assert validate_strategies(["Switch", "STAY"]) == [Strategy.SWITCH, Strategy.STAY]


# ── Synchronous Mode ────────────────────────────────────────────


class TestRunSync:
    def test_run_sync_completes(self) -> None:
        rec = _Recorder()
        result = _runner().run_sync(
            300, ["stay", "switch"], chunk_size=100,
            on_progress=rec.on_progress, on_complete=rec.on_complete,
        )
        assert result.games_played == 300
        assert [e.completed for e in rec.events] == [100, 150, 250, 300]
        assert rec.completed == [result]

    def test_run_sync_matches_async(self) -> None:
        sync_result = _runner(seed=4).run_sync(200, ["switch"], chunk_size=30)
        async_result = asyncio.run(_runner(seed=4).run(200, ["switch"], chunk_size=30))
        assert sync_result.per_strategy == async_result.per_strategy

    def test_run_sync_stop(self) -> None:
        runner = _runner()
        result = runner.run_sync(
            100, ["stay"], chunk_size=25, on_progress=lambda e: runner.stop(),
        )
        assert result.batch("stay").played == 25
        assert result.state == RunState.STOPPED

    def test_run_sync_rejects_coroutine_callbacks(self) -> None:
        async def on_progress(event: ProgressEvent) -> None:
            return None

        with pytest.raises(InvalidArgumentError):
            _runner().run_sync(10, ["stay"], on_progress=on_progress)  # type: ignore[arg-type]


# ── Long-run Behaviour ──────────────────────────────────────────


class TestLongRun:
    def test_switch_win_rate_near_two_thirds(self) -> None:
        result = BatchRunner().run_sync(100_000, ["switch"], chunk_size=1000)
        batch = result.batch("switch")
        # 95% CI half-width at n=100k is ~0.003; 0.01 is well outside noise
        assert batch.win_rate == pytest.approx(2 / 3, abs=0.01)
