import pytest

from loremaster.exceptions import ValidationError
from loremaster.services.trivia.importer import parse_csv
from loremaster.services.trivia.settings import (
    DIFFICULTIES,
    Settings,
    normalize_filters,
    normalize_timing,
)


def test_timing_in_milliseconds():
    s = normalize_timing({'answerTime': 15000, 'intervalTime': 300000}, Settings())
    assert (s.answer_time_ms, s.interval_ms) == (15000, 300000)


def test_partial_timing_keeps_current_value():
    s = normalize_timing({'answerTime': 10000}, Settings(interval_ms=120000))
    assert (s.answer_time_ms, s.interval_ms) == (10000, 120000)


@pytest.mark.parametrize('payload', [
    {'answerTime': 4999},
    {'answerTime': 60001},
    {'intervalTime': 59999},
    {'intervalTime': 1800001},
    {'answerTime': '30000'},
    {'answerTime': True},
    {'answerTime': 30000, 'answerDuration': 30},
    {'unrelated': 1},
    {},
    {'answerTime': float('nan')},
    {'intervalTime': float('inf')},
    {'answerDuration': float('-inf')},
    [1, 2],
])
def test_invalid_timing_is_rejected_not_clamped(payload):
    current = Settings()
    with pytest.raises(ValidationError):
        normalize_timing(payload, current)


def test_filters_normalize_and_default_difficulties():
    s = normalize_filters({'activeCategories': ['science', ' science', 'history']}, Settings())
    assert s.active_categories == ('science', 'history')
    assert s.active_difficulties == DIFFICULTIES
    assert s.filters == {'categories': ['science', 'history'], 'difficulties': list(DIFFICULTIES)}


def test_filters_must_be_lists_of_known_values():
    with pytest.raises(ValidationError):
        normalize_filters({'activeCategories': 'science'}, Settings())
    with pytest.raises(ValidationError):
        normalize_filters({'activeDifficulties': ['Legendary']}, Settings())


def test_filter_update_keeps_timing():
    s = normalize_filters({'activeDifficulties': ['Hard']}, Settings(answer_time_ms=12000))
    assert s.answer_time_ms == 12000
    assert s.active_difficulties == ('Hard',)


def test_csv_import_keeps_correct_answer_first_and_skips_bad_rows():
    text = (
        'What is 2+2?,4,3,5,22,math,easy\n'
        'Too short,1,2\n'
        '\n'
        'Bad level?,a,b,c,d,misc,Impossible\n'
        'Plain row?,yes,no,maybe,never\r\n'
    )
    questions, skipped = parse_csv(text)
    assert [q.text for q in questions] == ['What is 2+2?', 'Plain row?']
    assert questions[0].choices == ['4', '3', '5', '22']
    assert questions[0].difficulty == 'Easy'
    assert questions[0].category_id == 'math'
    assert questions[1].category_id is None
    assert len(skipped) == 2


def test_filters_reject_non_object_payload():
    with pytest.raises(ValidationError):
        normalize_filters(['science'], Settings())
