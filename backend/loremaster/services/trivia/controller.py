"""Round controller: the only owner of live round state.

Lifecycle::

    inactive -> countdown -> question_live -> countdown -> ... -> inactive

Progress is driven by ``tick()`` (once a second from the background ticker)
plus the start/end/answer entry points called from HTTP handlers. All state
changes happen under ``self._lock``; the lock is always released before
publishing to the broadcast channel or querying a store. Guard flags
(``active``, ``question_in_progress``) are flipped before the lock is
released so a second trigger arriving mid-broadcast sees them.

``end()`` is the cancellation mechanism. Each start/end bumps
``generation`` and deferred callbacks compare it before touching state, so
a question window that outlives its round is ignored.
"""

import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loremaster.exceptions import CollaboratorUnavailable, ValidationError
from .events import Countdown, QuestionEvent, RoundEnded, RoundStarted, SettingsChanged
from .scoring import calculate_score
from .settings import Settings, normalize_timing


PHASE_INACTIVE = 'inactive'
PHASE_COUNTDOWN = 'countdown'
PHASE_QUESTION_LIVE = 'question_live'

DEFAULT_GRACE_MS = 5000


def _now_ms() -> float:
    return time.time() * 1000.0


@dataclass
class RoundState:
    active: bool = False
    broadcaster_id: Optional[str] = None
    next_question_at: Optional[float] = None
    round_end_at: float = 0
    question_in_progress: bool = False
    current_question: Optional[Dict[str, Any]] = None
    generation: int = 0

    @property
    def phase(self) -> str:
        if not self.active:
            return PHASE_INACTIVE
        if self.question_in_progress:
            return PHASE_QUESTION_LIVE
        return PHASE_COUNTDOWN


@dataclass
class RoundResult:
    success: bool
    message: str
    conflict: bool = False


@dataclass
class AnswerResult:
    accepted: bool
    message: str = ''
    is_correct: bool = False
    points: int = 0
    base_points: int = 0
    time_bonus_percent: int = 0
    total_score: int = 0
    session_score: int = 0
    difficulty: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.accepted:
            return {'success': False, 'error': self.message}
        return {
            'success': True,
            'correct': self.is_correct,
            'pointsEarned': self.points,
            'totalScore': self.total_score,
            'sessionScore': self.session_score,
            'basePoints': self.base_points,
            'difficulty': self.difficulty,
            'timePercentage': self.time_bonus_percent,
        }


class RoundController:
    def __init__(self, app, selector, settings_store, score_store, channel,
                 scheduler, clock=None, grace_ms: int = DEFAULT_GRACE_MS, rng=None):
        self.app = app
        self.selector = selector
        self.settings_store = settings_store
        self.score_store = score_store
        self.channel = channel
        self.scheduler = scheduler
        self.clock = clock or _now_ms
        self.grace_ms = grace_ms
        self.rng = rng or random.Random()
        self.state = RoundState()
        self._lock = threading.Lock()

    @property
    def logger(self):
        return self.app.logger

    def _default_channel(self):
        return self.app.config.get('DEFAULT_BROADCASTER_ID', 'default')

    def publish(self, channel_id, event) -> bool:
        try:
            return bool(self.channel.publish(channel_id, event))
        except Exception as exc:
            self.logger.error(f"[broadcast-fail] channel={channel_id} type={event.type} error={exc}")
            return False

    # ---- lifecycle ----

    def start(self, broadcaster_id=None) -> RoundResult:
        channel_id = broadcaster_id or self._default_channel()
        with self._lock:
            if self.state.active:
                self.logger.info("[trivia-start] already running; ignoring start request")
                return RoundResult(False, 'Trivia is already running!', conflict=True)
            self.state.active = True
            self.state.broadcaster_id = channel_id
            self.state.next_question_at = None
            self.state.round_end_at = 0
            self.state.question_in_progress = False
            self.state.current_question = None
            self.state.generation += 1
            generation = self.state.generation

        self.selector.reset()
        settings = self.settings_store.get(channel_id)
        published = self.publish(channel_id, RoundStarted(interval_ms=settings.interval_ms))

        with self._lock:
            if self.state.generation != generation:
                return RoundResult(False, 'Trivia was ended while starting.')
            if not published:
                self.state.active = False
                self.state.broadcaster_id = None
                self.logger.error(f"[trivia-start] channel={channel_id} failed to broadcast TRIVIA_START")
                return RoundResult(False, 'Failed to start trivia.')
            self.state.next_question_at = self.clock() + settings.interval_ms
        self.logger.info(
            f"[trivia-start] channel={channel_id} first question in {settings.interval_ms // 1000}s"
        )
        return RoundResult(True, 'Trivia started!')

    def end(self, broadcaster_id=None) -> RoundResult:
        with self._lock:
            was_active = self.state.active
            channel_id = broadcaster_id or self.state.broadcaster_id or self._default_channel()
            self.state.active = False
            self.state.broadcaster_id = None
            self.state.next_question_at = None
            self.state.round_end_at = 0
            self.state.question_in_progress = False
            self.state.current_question = None
            self.state.generation += 1

        self.selector.reset()
        self.score_store.reset_session()
        published = self.publish(channel_id, RoundEnded())
        self.logger.info(f"[trivia-end] channel={channel_id} was_active={was_active} broadcast={published}")
        if not published:
            return RoundResult(True, 'Trivia ended, but viewers could not be notified.')
        return RoundResult(True, 'Trivia ended!')

    # ---- timing ----

    def tick(self) -> None:
        with self._lock:
            if not self.state.active or self.state.next_question_at is None:
                return
            now = self.clock()
            channel_id = self.state.broadcaster_id
            remaining = self.state.next_question_at - now
            if remaining > 0:
                if now < self.state.round_end_at or self.state.question_in_progress:
                    return
                send = False
            elif not self.state.question_in_progress:
                send = True
            else:
                return

        if send:
            self.logger.info(f"[countdown] channel={channel_id} reached 0; sending question")
            self.send_question(channel_id)
            return
        if remaining % 10000 < 1000:
            self.logger.info(f"[countdown] channel={channel_id} {round(remaining / 1000)}s remaining")
        self.publish(channel_id, Countdown(time_remaining_ms=int(remaining)))

    def send_question(self, broadcaster_id=None) -> RoundResult:
        with self._lock:
            if not self.state.active:
                return RoundResult(False, 'Trivia is not active.', conflict=True)
            if self.state.question_in_progress:
                self.logger.warning("[question-send] a question is already in progress; skipping")
                return RoundResult(False, 'A question is already in progress.', conflict=True)
            self.state.question_in_progress = True
            generation = self.state.generation
            channel_id = broadcaster_id or self.state.broadcaster_id

        try:
            settings = self.settings_store.get(channel_id)
            question = self.selector.next(settings.filters)
            if question is None:
                raise CollaboratorUnavailable('No trivia questions available!')
            if not self.publish(channel_id, self._question_event(question, settings)):
                raise CollaboratorUnavailable('Failed to broadcast question')
        except Exception as exc:
            self.logger.error(f"[question-send] channel={channel_id} failed: {exc}")
            with self._lock:
                if self.state.generation == generation:
                    self.state.question_in_progress = False
            return RoundResult(False, str(exc))

        window_ms = settings.answer_time_ms + self.grace_ms
        with self._lock:
            if self.state.generation != generation:
                return RoundResult(False, 'Trivia ended while the question was being sent.')
            self.state.round_end_at = self.clock() + window_ms
            self.state.current_question = {
                'questionId': question.id,
                'difficulty': question.difficulty,
                'duration': settings.answer_time_ms,
                'categoryId': question.category_id,
            }
        self.logger.info(
            f"[question-send] channel={channel_id} question={question.id} "
            f"difficulty={question.difficulty} window={window_ms}ms"
        )
        self.scheduler.call_later(window_ms / 1000.0, self._close_question_window, generation, channel_id)
        return RoundResult(True, 'Trivia question sent!')

    def _question_event(self, question, settings: Settings) -> QuestionEvent:
        return QuestionEvent(
            text=question.text,
            choices=question.shuffled_choices(self.rng),
            correct_answer=question.correct_answer,
            duration_ms=settings.answer_time_ms,
            category_id=question.category_id,
            difficulty=question.difficulty,
            question_id=question.id,
        )

    def pull_question(self) -> Dict[str, Any]:
        """Serve the next question to a client that polls instead of listening.

        While the round cannot serve one the result carries an ``error``
        (plus ``timeRemaining`` during the countdown). Pulling neither
        opens a question window nor broadcasts anything.
        """
        with self._lock:
            if not self.state.active:
                return {'error': 'Trivia is not active.'}
            if self.state.next_question_at is None:
                return {'error': 'Next question not ready yet.', 'timeRemaining': None}
            remaining = self.state.next_question_at - self.clock()
            if remaining > 0:
                return {'error': 'Next question not ready yet.', 'timeRemaining': int(remaining)}
            if self.state.question_in_progress:
                return {'error': 'A question is already in progress.'}
            channel_id = self.state.broadcaster_id

        settings = self.settings_store.get(channel_id)
        question = self.selector.next(settings.filters)
        if question is None:
            raise CollaboratorUnavailable('No trivia questions available.')
        self.logger.info(f"[question-pull] channel={channel_id} question={question.id}")
        payload = self._question_event(question, settings).to_payload()
        del payload['type']
        return payload

    def _close_question_window(self, generation: int, channel_id) -> None:
        settings = self.settings_store.get(channel_id)
        with self._lock:
            if not self.state.active or self.state.generation != generation:
                self.logger.info(f"[question-window] channel={channel_id} round no longer active; ignoring")
                return
            self.state.question_in_progress = False
            self.state.current_question = None
            self.state.next_question_at = self.clock() + settings.interval_ms
        self.logger.info(f"[question-window] channel={channel_id} next question in {settings.interval_ms // 1000}s")

    # ---- answers ----

    def submit_answer(self, user_id, selected_answer, correct_answer, answer_time_ms,
                      difficulty=None, duration_ms=None, username=None) -> AnswerResult:
        user_id = str(user_id).strip() if user_id is not None else ''
        missing = {
            'userId': not user_id,
            'selectedAnswer': not selected_answer,
            'correctAnswer': not correct_answer,
            'answerTime': answer_time_ms is None,
        }
        if any(missing.values()):
            raise ValidationError('Missing required fields', {'missing': missing})

        with self._lock:
            live = self.state.active and self.state.question_in_progress
            current = dict(self.state.current_question or {})
            channel_id = self.state.broadcaster_id
        if not live:
            return AnswerResult(accepted=False, message='No question is live.')

        difficulty = difficulty or current.get('difficulty') or 'Medium'
        if duration_ms is None:
            duration_ms = current.get('duration') or self.settings_store.get(channel_id).answer_time_ms

        is_correct = selected_answer == correct_answer
        score = calculate_score(is_correct, difficulty, answer_time_ms, duration_ms)
        total, session = self.score_store.add_points(user_id, score.points, username)
        self.logger.info(
            f"[answer] user={user_id} correct={is_correct} points={score.points} bonus={score.time_bonus_percent}%"
        )
        return AnswerResult(
            accepted=True,
            is_correct=is_correct,
            points=score.points,
            base_points=score.base_points,
            time_bonus_percent=score.time_bonus_percent,
            total_score=total,
            session_score=session,
            difficulty=difficulty,
        )

    # ---- settings ----

    def update_timing(self, broadcaster_id, raw) -> Settings:
        channel_id = broadcaster_id or self._default_channel()
        settings = normalize_timing(raw, self.settings_store.get(channel_id))
        self.settings_store.put(channel_id, settings)
        self.logger.info(
            f"[settings] channel={channel_id} answer={settings.answer_time_ms}ms interval={settings.interval_ms}ms"
        )
        self.publish(channel_id, SettingsChanged(settings.answer_time_ms, settings.interval_ms))
        return settings

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            state = RoundState(**vars(self.state))
            now = self.clock()
        remaining = None
        if state.active and state.next_question_at is not None:
            remaining = max(0, int(state.next_question_at - now))
        return {
            'active': state.active,
            'phase': state.phase,
            'broadcasterId': state.broadcaster_id,
            'nextQuestionAt': state.next_question_at,
            'timeRemaining': remaining,
            'roundEndAt': state.round_end_at or None,
            'questionInProgress': state.question_in_progress,
            'currentQuestion': state.current_question,
            'usedQuestionIds': self.selector.used_ids,
        }
