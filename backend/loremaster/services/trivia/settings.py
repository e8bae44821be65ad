"""Broadcaster settings: one validated, immutable value per broadcaster.

Request payloads come in several shapes (milliseconds, or the extension's
seconds/minutes aliases). They are normalized here, at the boundary, and
anything ambiguous or out of range is rejected.
"""

import math
from dataclasses import dataclass, replace
from numbers import Real
from typing import Any, Dict, Optional, Tuple

from loremaster.exceptions import ValidationError


DIFFICULTIES = ('Easy', 'Medium', 'Hard')

ANSWER_TIME_RANGE_MS = (5000, 60000)
INTERVAL_RANGE_MS = (60000, 1800000)


@dataclass(frozen=True)
class Settings:
    answer_time_ms: int = 30000
    interval_ms: int = 600000
    active_categories: Tuple[str, ...] = ()
    active_difficulties: Tuple[str, ...] = DIFFICULTIES

    @property
    def filters(self) -> Dict[str, list]:
        """Question filters; an empty difficulty set means all of them."""
        return {
            'categories': list(self.active_categories),
            'difficulties': list(self.active_difficulties or DIFFICULTIES),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'answerTime': self.answer_time_ms,
            'intervalTime': self.interval_ms,
            'activeCategories': list(self.active_categories),
            'activeDifficulties': list(self.active_difficulties),
        }


def _as_ms(value, field):
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f'{field} must be a number', {'field': field})
    if not math.isfinite(value):
        raise ValidationError(f'{field} must be a finite number', {'field': field})
    if value != int(value):
        raise ValidationError(f'{field} must be a whole number of milliseconds', {'field': field})
    return int(value)


def _check_range(value, bounds, field):
    low, high = bounds
    if value < low or value > high:
        raise ValidationError(
            f'{field} must be between {low} and {high} ms',
            {'field': field, 'value': value},
        )
    return value


def validate(settings: Settings) -> Settings:
    _check_range(settings.answer_time_ms, ANSWER_TIME_RANGE_MS, 'answerTime')
    _check_range(settings.interval_ms, INTERVAL_RANGE_MS, 'intervalTime')
    unknown = [d for d in settings.active_difficulties if d not in DIFFICULTIES]
    if unknown:
        raise ValidationError(f'Unknown difficulties: {", ".join(unknown)}', {'field': 'activeDifficulties'})
    return settings


def _pick_alias(raw, ms_key, alias_key, factor):
    direct = raw.get(ms_key)
    alias = raw.get(alias_key)
    if direct is None and alias is None:
        return None
    if direct is not None and alias is not None:
        raise ValidationError(f'Send either {ms_key} or {alias_key}, not both', {'field': ms_key})
    if direct is not None:
        return _as_ms(direct, ms_key)
    if isinstance(alias, bool) or not isinstance(alias, Real):
        raise ValidationError(f'{alias_key} must be a number', {'field': alias_key})
    return _as_ms(alias * factor, alias_key)


def normalize_timing(raw: Optional[Dict[str, Any]], current: Settings) -> Settings:
    """Apply a timing payload on top of ``current``.

    Accepts ``answerTime``/``intervalTime`` in milliseconds, or
    ``answerDuration`` in seconds and ``questionInterval`` in minutes.
    """
    if not raw:
        raise ValidationError('Empty request body!')
    if not isinstance(raw, dict):
        raise ValidationError('Settings must be a JSON object')
    answer = _pick_alias(raw, 'answerTime', 'answerDuration', 1000)
    interval = _pick_alias(raw, 'intervalTime', 'questionInterval', 60000)
    if answer is None and interval is None:
        raise ValidationError('Invalid time values', {'field': 'answerTime'})
    updated = replace(
        current,
        answer_time_ms=current.answer_time_ms if answer is None else answer,
        interval_ms=current.interval_ms if interval is None else interval,
    )
    return validate(updated)


def _as_str_list(value, field):
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f'{field} must be an array', {'field': field})
    items = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValidationError(f'{field} must contain non-empty strings', {'field': field})
        if item.strip() not in items:
            items.append(item.strip())
    return tuple(items)


def normalize_filters(raw: Optional[Dict[str, Any]], current: Settings) -> Settings:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValidationError('Settings must be a JSON object')
    categories = _as_str_list(raw.get('activeCategories'), 'activeCategories')
    difficulties = _as_str_list(raw.get('activeDifficulties'), 'activeDifficulties')
    updated = replace(
        current,
        active_categories=() if categories is None else categories,
        active_difficulties=DIFFICULTIES if not difficulties else difficulties,
    )
    return validate(updated)
