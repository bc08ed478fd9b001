"""User-adjustable rest timer settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class RestTimerSettings:
    extend_seconds: int = 30
    warning_thresholds: Tuple[int, ...] = (30, 10)
    haptic_feedback: bool = True
    notifications: bool = True
    auto_start: bool = True
    history_limit: int = 10
    tick_interval: float = 1.0

    def __post_init__(self) -> None:
        if self.extend_seconds <= 0:
            raise ValueError(f"extend_seconds must be positive, got {self.extend_seconds}")
        if self.history_limit < 0:
            raise ValueError(f"history_limit must not be negative, got {self.history_limit}")
        if self.tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {self.tick_interval}")
