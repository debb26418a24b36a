"""Level table and resolution.

These values MUST match the frontend level table exactly.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LevelDefinition:
    level: int
    name: str
    min_xp: int
    icon: str


@dataclass(frozen=True)
class LevelResolution:
    current: LevelDefinition
    next: LevelDefinition | None
    progress_to_next_percent: int


LEVELS: tuple[LevelDefinition, ...] = (
    LevelDefinition(1, "Code Cadet", 0, "\U0001f3af"),
    LevelDefinition(2, "Bug Hunter", 100, "\U0001f50d"),
    LevelDefinition(3, "Digital Creator", 225, "\U0001f3a8"),
    LevelDefinition(4, "Code Wizard", 400, "\U0001f9d9"),
    LevelDefinition(5, "Tech Mentor", 650, "\U0001f468\u200d\U0001f3eb"),
    LevelDefinition(6, "Innovation Leader", 1000, "\U0001f4a1"),
    LevelDefinition(7, "Tech Architect", 1500, "\U0001f3d7\ufe0f"),
    LevelDefinition(8, "CodesRock Champion", 2250, "\U0001f3c6"),
)


def get_level_by_xp(total_xp: int, levels: tuple[LevelDefinition, ...] = LEVELS) -> LevelDefinition:
    """Highest level whose threshold has been reached (inclusive)."""
    for definition in reversed(levels):
        if total_xp >= definition.min_xp:
            return definition
    return levels[0]


def get_level_by_number(level: int, levels: tuple[LevelDefinition, ...] = LEVELS) -> LevelDefinition | None:
    for definition in levels:
        if definition.level == level:
            return definition
    return None


def get_next_level(level: int, levels: tuple[LevelDefinition, ...] = LEVELS) -> LevelDefinition | None:
    return get_level_by_number(level + 1, levels)


def resolve_level(total_xp: int, levels: tuple[LevelDefinition, ...] = LEVELS) -> LevelResolution:
    """Compute current level, next level and percent progress from total XP.

    Negative XP is clamped to 0. At the top level ``next`` is None and
    progress is 0.
    """
    xp = max(0, total_xp)
    current = get_level_by_xp(xp, levels)
    next_level = get_next_level(current.level, levels)

    progress = 0
    if next_level is not None:
        band = next_level.min_xp - current.min_xp
        progress = round((xp - current.min_xp) / band * 100)

    return LevelResolution(current=current, next=next_level, progress_to_next_percent=progress)
