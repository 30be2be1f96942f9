"""TrialGenerator — one randomized game of the three-door problem."""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import Protocol, TypeVar

from montyhall.core.types import DOORS, Strategy, Trial
from montyhall.simulation.exceptions import InvalidArgumentError, InvalidDoorError

_T = TypeVar("_T")


class RandomSource(Protocol):
    """The subset of :class:`random.Random` the generator consumes."""

    def randrange(self, stop: int) -> int: ...

    def choice(self, seq: Sequence[_T]) -> _T: ...


def parse_strategy(value: Strategy | str) -> Strategy:
    """Coerce a strategy name (case-insensitive) into :class:`Strategy`."""
    if isinstance(value, Strategy):
        return value
    try:
        return Strategy(str(value).strip().lower())
    except ValueError:
        raise InvalidArgumentError(f"Unknown strategy: {value!r}") from None


def validate_door(door: object) -> int:
    if isinstance(door, bool) or not isinstance(door, int) or door not in DOORS:
        raise InvalidDoorError(f"Door must be one of {DOORS}, got {door!r}")
    return door


class TrialGenerator:
    """Plays single games against an injected random source.

    The car is placed uniformly at random.  When the player's pick hides
    the car the host has two goat doors to choose from and picks one
    uniformly; otherwise exactly one goat door is left and the reveal is
    forced.

    Usage::

        gen = TrialGenerator(random.Random(42))
        trial = gen.generate_trial(Strategy.SWITCH, player_choice=0)
    """

    def __init__(self, rng: RandomSource | None = None) -> None:
        self._rng: RandomSource = rng if rng is not None else random.Random()

    @classmethod
    def seeded(cls, seed: int | None) -> TrialGenerator:
        """Build a generator over a fresh ``random.Random(seed)``."""
        return cls(random.Random(seed))

    @property
    def rng(self) -> RandomSource:
        """The random source trials draw from."""
        return self._rng

    def generate_trial(self, strategy: Strategy | str, player_choice: int) -> Trial:
        strategy = parse_strategy(strategy)
        player_choice = validate_door(player_choice)

        car_door = self._rng.randrange(len(DOORS))
        host_revealed = self._host_reveal(car_door, player_choice)

        if strategy is Strategy.STAY:
            final_choice = player_choice
        else:
            final_choice = _remaining_door(player_choice, host_revealed)

        return Trial(
            strategy=strategy,
            player_choice=player_choice,
            host_revealed_door=host_revealed,
            final_choice=final_choice,
            car_door=car_door,
            won=final_choice == car_door,
        )

    def generate_chunk(
        self,
        strategy: Strategy | str,
        count: int,
        player_choice: int | None = None,
    ) -> list[Trial]:
        """Generate *count* trials.

        With ``player_choice=None`` the first pick is drawn uniformly for
        every trial.
        """
        strategy = parse_strategy(strategy)
        trials: list[Trial] = []
        for _ in range(count):
            pick = (
                player_choice
                if player_choice is not None
                else self._rng.randrange(len(DOORS))
            )
            trials.append(self.generate_trial(strategy, pick))
        return trials

    def _host_reveal(self, car_door: int, player_choice: int) -> int:
        candidates = [d for d in DOORS if d not in (car_door, player_choice)]
        if len(candidates) == 1:
            return candidates[0]
        return self._rng.choice(candidates)


def _remaining_door(player_choice: int, host_revealed: int) -> int:
    (door,) = (d for d in DOORS if d not in (player_choice, host_revealed))
    return door
