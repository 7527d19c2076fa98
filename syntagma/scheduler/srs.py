from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

UTC = timezone.utc

MAX_STEP = 8
LEARNED_STEP = 6
MINUTES_PER_DAY = 1440


@dataclass(frozen=True)
class StepInterval:
    amount: int
    unit: str  # "minute" or "day"


SRS_STEPS: dict[int, StepInterval] = {
    0: StepInterval(1, "minute"),
    1: StepInterval(10, "minute"),
    2: StepInterval(60, "minute"),
    3: StepInterval(1, "day"),
    4: StepInterval(3, "day"),
    5: StepInterval(7, "day"),
    6: StepInterval(21, "day"),
    7: StepInterval(90, "day"),
    8: StepInterval(36500, "day"),
}


def step_interval(step: int) -> StepInterval:
    return SRS_STEPS.get(step, SRS_STEPS[MAX_STEP])


def interval_in_days(step: int) -> float:
    interval = step_interval(step)
    if interval.unit == "minute":
        return interval.amount / MINUTES_PER_DAY
    return float(interval.amount)


def next_review_at(step: int, reference_time: datetime) -> datetime:
    interval = step_interval(step)
    if interval.unit == "minute":
        return reference_time + timedelta(minutes=interval.amount)
    return reference_time + timedelta(days=interval.amount)


def derive_status(step: int) -> str:
    return "learned" if step >= LEARNED_STEP else "learning"


def clamp_step(step: int) -> int:
    return max(0, min(int(step), MAX_STEP))
