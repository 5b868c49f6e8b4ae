from __future__ import annotations

import math


DIFFICULTY_XP: dict[str, int] = {
    "easy": 5,
    "medium": 10,
    "hard": 15,
}
DEFAULT_BASE_XP = 10

# (level, xp threshold), strictly increasing.
LEVEL_THRESHOLDS: tuple[tuple[int, int], ...] = (
    (1, 0),
    (2, 100),
    (3, 250),
    (4, 500),
    (5, 800),
    (6, 1200),
    (7, 1700),
    (8, 2300),
    (9, 3000),
    (10, 3800),
)
MAX_LEVEL = LEVEL_THRESHOLDS[-1][0]


def round_half_up(value: float) -> int:
    # 2.5 -> 3, unlike round()
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def _normalize_difficulty(difficulty) -> str:
    value = str(getattr(difficulty, "value", difficulty) or "").strip().lower()
    return "medium" if value == "med" else value


def xp_for_attempt(score_percentage: int | float, difficulty) -> int:
    base = DIFFICULTY_XP.get(_normalize_difficulty(difficulty), DEFAULT_BASE_XP)
    clamped = max(0.0, min(float(score_percentage), 100.0))
    return round_half_up(base * clamped / 100)


def level_for_xp(xp_total: int) -> int:
    level = LEVEL_THRESHOLDS[0][0]
    for lvl, threshold in LEVEL_THRESHOLDS:
        if xp_total >= threshold:
            level = lvl
        else:
            break
    return level


def xp_to_next_level(xp_total: int) -> int:
    for _, threshold in LEVEL_THRESHOLDS:
        if xp_total < threshold:
            return threshold - xp_total
    return 0
