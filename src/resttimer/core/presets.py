"""Named rest-period presets and time formatting."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RestPreset:
    name: str
    seconds: int
    description: str


REST_PRESETS = (
    RestPreset("Strength", 180, "3 minutes for heavy lifting"),
    RestPreset("Hypertrophy", 90, "90 seconds for muscle growth"),
    RestPreset("Endurance", 45, "45 seconds for conditioning"),
    RestPreset("Power", 300, "5 minutes for explosive training"),
    RestPreset("Circuit", 30, "30 seconds for circuit training"),
    RestPreset("Custom", 120, "Set your own time"),
)


def get_preset(name: str) -> RestPreset:
    """Look up a preset by name, ignoring case.  Raises ``KeyError`` if unknown."""
    wanted = name.strip().lower()
    for preset in REST_PRESETS:
        if preset.name.lower() == wanted:
            return preset
    raise KeyError(f"unknown preset: {name!r}")


def format_time(seconds: float) -> str:
    """Format *seconds* as ``M:SS``."""
    total = max(int(seconds), 0)
    return f"{total // 60}:{total % 60:02d}"
