from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

PERIOD_UNITS = {
    "S": timedelta(seconds=1),
    "M": timedelta(minutes=1),
    "H": timedelta(hours=1),
    "D": timedelta(days=1),
}


@dataclass(frozen=True)
class Rate:
    limit: int
    period: timedelta

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError(f"rate limit must be >= 0, got {self.limit}")
        if self.period <= timedelta(0):
            raise ValueError(f"rate period must be positive, got {self.period}")

    @classmethod
    def parse(cls, formatted: str) -> "Rate":
        """Parse "<limit>-<unit>" (e.g. "5-M", "1000-H"); unit is one of S, M, H, D."""
        parts = (formatted or "").strip().split("-")
        if len(parts) != 2:
            raise ValueError(f"incorrect rate format: {formatted!r}")

        limit_part, unit = parts[0].strip(), parts[1].strip().upper()
        if unit not in PERIOD_UNITS:
            raise ValueError(f"incorrect rate period: {formatted!r}")
        try:
            limit = int(limit_part)
        except ValueError:
            raise ValueError(f"incorrect rate limit: {formatted!r}") from None

        return cls(limit=limit, period=PERIOD_UNITS[unit])


@dataclass(frozen=True)
class WindowState:
    now: datetime
    reset_at: datetime
    count: int

    @property
    def reset_in(self) -> timedelta:
        return self.reset_at - self.now

    @property
    def reset_epoch(self) -> int:
        return int(self.reset_at.timestamp())


@dataclass(frozen=True)
class LimitContext:
    limit: int
    remaining: int
    reset_epoch: int
    reached: bool

    @classmethod
    def from_state(cls, state: WindowState, rate: Rate) -> "LimitContext":
        reached = state.count > rate.limit
        return cls(
            limit=rate.limit,
            remaining=0 if reached else rate.limit - state.count,
            reset_epoch=state.reset_epoch,
            reached=reached,
        )


def window_key(prefix: str, identifier: str) -> str:
    return f"{prefix}:{identifier}"
