"""Question selection with a per-round dedup window.

Selection walks an ordered list of strategies and stops at the first one
that yields a question:

1. the broadcaster's filters, excluding questions already used this round
2. once the pool is exhausted, either reset the dedup window (large
   windows) and retry the filtered query once, or broaden to every
   category and difficulty (small windows)
3. the static list loaded from the last CSV upload

Store failures count as "nothing found" so a flaky database degrades the
round instead of stopping it.
"""

import random
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Question:
    id: Optional[int]
    text: str
    correct_answer: str
    wrong_answers: Tuple[str, ...]
    category_id: Optional[str] = None
    difficulty: Optional[str] = None

    @property
    def choices(self) -> List[str]:
        return [self.correct_answer, *self.wrong_answers]

    def shuffled_choices(self, rng=None) -> List[str]:
        choices = self.choices
        (rng or random).shuffle(choices)
        return choices


class QuestionSelector:
    def __init__(self, store, logger, reset_threshold: int = 10, rng=None):
        self.store = store
        self.logger = logger
        self.reset_threshold = reset_threshold
        self.rng = rng or random.Random()
        self._lock = threading.Lock()
        self._used: List[int] = []
        self._static: List[Question] = []

    # ---- dedup window ----

    @property
    def used_ids(self) -> List[int]:
        with self._lock:
            return list(self._used)

    def reset(self) -> None:
        with self._lock:
            self._used = []

    def _mark_used(self, question: Question) -> None:
        if question.id is None:
            return
        with self._lock:
            if question.id not in self._used:
                self._used.append(question.id)
            total = len(self._used)
        self.logger.info(f"[selector-used] question={question.id} used={total}")

    # ---- static fallback ----

    def load_static(self, questions: Sequence[Question]) -> int:
        self._static = list(questions)
        return len(self._static)

    @property
    def static_count(self) -> int:
        return len(self._static)

    # ---- selection ----

    def _query(self, categories, difficulties, exclude_ids) -> Optional[Question]:
        try:
            return self.store.random_question(categories, difficulties, exclude_ids)
        except Exception as exc:
            self.logger.error(f"[selector-error] store query failed: {exc}")
            return None

    def _filtered(self, filters: Dict[str, list]) -> Optional[Question]:
        return self._query(filters.get('categories'), filters.get('difficulties'), self.used_ids)

    def _after_exhaustion(self, filters: Dict[str, list]) -> Optional[Question]:
        used = self.used_ids
        if not used:
            return None
        if len(used) > self.reset_threshold:
            self.logger.info(f"[selector-reset] pool exhausted after {len(used)} questions; clearing used list")
            self.reset()
            return self._query(filters.get('categories'), filters.get('difficulties'), [])
        self.logger.warning("[selector-broaden] no unused question matches filters; trying any question")
        return self._query(None, None, used)

    def _static_fallback(self, filters: Dict[str, list]) -> Optional[Question]:
        if not self._static:
            return None
        self.logger.warning("[selector-static] falling back to uploaded question list")
        return self.rng.choice(self._static)

    @property
    def strategies(self) -> List[Callable[[Dict[str, list]], Optional[Question]]]:
        return [self._filtered, self._after_exhaustion, self._static_fallback]

    def next(self, filters: Optional[Dict[str, list]] = None) -> Optional[Question]:
        filters = filters or {}
        for strategy in self.strategies:
            question = strategy(filters)
            if question is not None:
                self._mark_used(question)
                return question
        self.logger.error("[selector-empty] no trivia questions available")
        return None

    def preview(self, filters: Optional[Dict[str, list]] = None, limit: int = 5) -> Dict[str, object]:
        filters = filters or {}
        categories = filters.get('categories')
        difficulties = filters.get('difficulties')
        return {
            'questions': self.store.sample(categories, difficulties, limit),
            'totalMatching': self.store.count(categories, difficulties),
        }
