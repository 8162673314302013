from __future__ import annotations

import math
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FadePlan:
    levels: list[int] = field(default_factory=list)
    step_duration: float = 0.0

    @property
    def step_count(self) -> int:
        return len(self.levels)


def plan_fade(
    target: float, start: float = 0, duration: float = 20.0, step: float | None = None
) -> FadePlan:
    """Compute the volume levels of a fade and the pause after each one.

    The number of steps is ``|floor(target - start)|``. Each step sends the
    current level and then moves by ``step`` towards ``target``; without an
    explicit ``step`` the level moves by ``(target - start) / step_count``.
    The first level sent is ``start``, the last one is one step short of
    ``target``.

    A ``step`` large enough to reach ``target`` early ends the fade at
    ``target``; the remaining steps are dropped and the pause is stretched so
    the fade still lasts ``duration``.
    """
    step_count = abs(math.floor(target - start))
    if step_count == 0:
        return FadePlan()

    if step is None:
        delta = (target - start) / step_count
    else:
        delta = math.copysign(step, target - start)

    levels: list[int] = []
    for i in range(step_count):
        value = start + i * delta
        if (value >= target) if delta > 0 else (value <= target):
            levels.append(round(target))
            break
        levels.append(round(value))
    return FadePlan(levels=levels, step_duration=duration / len(levels))
