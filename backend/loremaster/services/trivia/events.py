"""Events pushed to viewers through the broadcast channel.

Each event knows its wire ``type`` and serializes to the camelCase payload
the extension frontend reads.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RoundStarted:
    interval_ms: int
    type = 'TRIVIA_START'

    def to_payload(self) -> Dict[str, Any]:
        return {'type': self.type, 'intervalTime': self.interval_ms}


@dataclass(frozen=True)
class QuestionEvent:
    text: str
    choices: List[str]
    correct_answer: str
    duration_ms: int
    category_id: Optional[str]
    difficulty: Optional[str]
    question_id: Optional[int]
    type = 'TRIVIA_QUESTION'

    def to_payload(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'question': self.text,
            'choices': list(self.choices),
            'correctAnswer': self.correct_answer,
            'duration': self.duration_ms,
            'categoryId': self.category_id,
            'difficulty': self.difficulty,
            'questionId': self.question_id,
        }


@dataclass(frozen=True)
class Countdown:
    time_remaining_ms: int
    type = 'COUNTDOWN_UPDATE'

    def to_payload(self) -> Dict[str, Any]:
        return {'type': self.type, 'timeRemaining': max(0, int(self.time_remaining_ms))}


@dataclass(frozen=True)
class RoundEnded:
    type = 'TRIVIA_END'

    def to_payload(self) -> Dict[str, Any]:
        return {'type': self.type}


@dataclass(frozen=True)
class SettingsChanged:
    answer_time_ms: int
    interval_ms: int
    type = 'SETTINGS_UPDATE'

    def to_payload(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'answerTime': self.answer_time_ms,
            'intervalTime': self.interval_ms,
        }


@dataclass(frozen=True)
class CommandResponse:
    """Reply to a broadcaster panel command, e.g. ``CATEGORIES_RESPONSE``."""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload = {'type': self.type}
        payload.update(self.data)
        return payload
