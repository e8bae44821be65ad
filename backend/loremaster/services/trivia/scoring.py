import math
from numbers import Real
from typing import NamedTuple

from loremaster.exceptions import ValidationError


BASE_POINTS = {
    'Easy': 500,
    'Medium': 1000,
    'Hard': 1500,
}
DEFAULT_BASE_POINTS = BASE_POINTS['Medium']
# A correct answer never earns less than this share of the base points
MIN_TIME_BONUS = 0.1


class ScoreResult(NamedTuple):
    points: int
    base_points: int
    time_bonus_percent: int


def base_points_for(difficulty) -> int:
    return BASE_POINTS.get(difficulty, DEFAULT_BASE_POINTS)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_score(is_correct: bool, difficulty, answer_time_ms, duration_ms) -> ScoreResult:
    """Score one answer.

    Difficulty sets the ceiling and the elapsed share of the answer window
    decays it linearly, down to a 10% floor for correct answers. Wrong
    answers always score zero.
    """
    for name, value in (('answer_time_ms', answer_time_ms), ('duration_ms', duration_ms)):
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ValidationError(f'{name} must be a number', {'field': name})
        if not math.isfinite(value):
            raise ValidationError(f'{name} must be a finite number', {'field': name})

    base = base_points_for(difficulty)
    if not is_correct:
        return ScoreResult(points=0, base_points=base, time_bonus_percent=0)

    if duration_ms <= 0:
        time_pct = 1.0
    else:
        time_pct = min(1.0, max(0.0, answer_time_ms / duration_ms))
    bonus = max(MIN_TIME_BONUS, 1.0 - time_pct)
    return ScoreResult(
        points=_round_half_up(base * bonus),
        base_points=base,
        time_bonus_percent=_round_half_up(bonus * 100),
    )
