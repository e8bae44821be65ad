"""SQLAlchemy-backed collaborators used by the round controller.

Every method opens its own app context so the stores can be called from the
Socket.IO background tick as well as from request handlers. Rows are turned
into plain values before the context closes.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loremaster import db
from loremaster.models import QuestionCategory, TriviaQuestion, TriviaSettings, UserScore
from .selector import Question
from .settings import DIFFICULTIES, Settings


def question_from_row(row: TriviaQuestion) -> Question:
    return Question(
        id=row.id,
        text=row.question,
        correct_answer=row.correct_answer,
        wrong_answers=(row.wrong_answer1, row.wrong_answer2, row.wrong_answer3),
        category_id=row.category_id,
        difficulty=row.difficulty,
    )


def _filtered_query(categories, difficulties):
    query = TriviaQuestion.query
    if categories:
        query = query.filter(TriviaQuestion.category_id.in_(list(categories)))
    if difficulties:
        query = query.filter(TriviaQuestion.difficulty.in_(list(difficulties)))
    return query


class QuestionStore:
    def __init__(self, app):
        self.app = app

    def random_question(self, categories=None, difficulties=None, exclude_ids=None) -> Optional[Question]:
        with self.app.app_context():
            query = _filtered_query(categories, difficulties)
            if exclude_ids:
                query = query.filter(TriviaQuestion.id.notin_(list(exclude_ids)))
            row = query.order_by(db.func.random()).first()
            return question_from_row(row) if row else None

    def count(self, categories=None, difficulties=None) -> int:
        with self.app.app_context():
            return _filtered_query(categories, difficulties).count()

    def sample(self, categories=None, difficulties=None, limit: int = 5) -> List[Dict[str, object]]:
        with self.app.app_context():
            rows = _filtered_query(categories, difficulties).order_by(db.func.random()).limit(limit).all()
            return [
                {'id': r.id, 'question': r.question, 'category': r.category_id, 'difficulty': r.difficulty}
                for r in rows
            ]

    def categories(self) -> List[Dict[str, object]]:
        with self.app.app_context():
            counts = (
                db.session.query(TriviaQuestion.category_id, db.func.count(TriviaQuestion.id))
                .group_by(TriviaQuestion.category_id)
                .order_by(TriviaQuestion.category_id)
                .all()
            )
            names = {c.id: c.name for c in QuestionCategory.query.all()}
            return [
                {'id': cid, 'name': names.get(cid) or cid, 'questionCount': count}
                for cid, count in counts
            ]

    def difficulties(self) -> List[Dict[str, object]]:
        with self.app.app_context():
            counts = dict(
                db.session.query(TriviaQuestion.difficulty, db.func.count(TriviaQuestion.id))
                .group_by(TriviaQuestion.difficulty)
                .all()
            )
        ordered = [d for d in DIFFICULTIES if d in counts] + sorted(d for d in counts if d not in DIFFICULTIES)
        return [{'difficulty': d, 'count': counts[d]} for d in ordered]

    def bulk_insert(self, questions: Iterable[Question]) -> int:
        with self.app.app_context():
            added = 0
            for q in questions:
                wrong = list(q.wrong_answers)
                db.session.add(TriviaQuestion(
                    question=q.text,
                    correct_answer=q.correct_answer,
                    wrong_answer1=wrong[0],
                    wrong_answer2=wrong[1],
                    wrong_answer3=wrong[2],
                    category_id=q.category_id or 'general',
                    difficulty=q.difficulty or 'Medium',
                ))
                if q.category_id and not db.session.get(QuestionCategory, q.category_id):
                    db.session.add(QuestionCategory(id=q.category_id, name=q.category_id))
                    db.session.flush()
                added += 1
            db.session.commit()
            return added


class SettingsStore:
    """Per-broadcaster settings with an in-memory cache.

    Cached values are frozen ``Settings`` objects and are only ever replaced
    whole, so readers never see a half-applied update.
    """

    def __init__(self, app):
        self.app = app
        self._cache: Dict[str, Settings] = {}
        self._lock = threading.Lock()

    def defaults(self) -> Settings:
        cfg = self.app.config
        return Settings(
            answer_time_ms=int(cfg.get('DEFAULT_ANSWER_TIME_MS', 30000)),
            interval_ms=int(cfg.get('DEFAULT_INTERVAL_MS', 600000)),
        )

    def _from_row(self, row: TriviaSettings) -> Settings:
        base = self.defaults()
        return Settings(
            answer_time_ms=row.answer_time_ms or base.answer_time_ms,
            interval_ms=row.interval_ms or base.interval_ms,
            active_categories=tuple(row.active_categories or ()),
            active_difficulties=tuple(row.active_difficulties or DIFFICULTIES),
        )

    def get(self, broadcaster_id) -> Settings:
        key = str(broadcaster_id)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            with self.app.app_context():
                row = db.session.get(TriviaSettings, key)
                settings = self._from_row(row) if row else self.defaults()
        except Exception as exc:
            self.app.logger.error(f"[settings-error] broadcaster={key} load failed: {exc}")
            return self.defaults()
        with self._lock:
            self._cache[key] = settings
        return settings

    def put(self, broadcaster_id, settings: Settings) -> Settings:
        key = str(broadcaster_id)
        with self.app.app_context():
            row = db.session.get(TriviaSettings, key)
            if row is None:
                row = TriviaSettings(broadcaster_id=key)
            row.answer_time_ms = settings.answer_time_ms
            row.interval_ms = settings.interval_ms
            row.active_categories = list(settings.active_categories)
            row.active_difficulties = list(settings.active_difficulties)
            db.session.add(row)
            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        with self._lock:
            self._cache[key] = settings
        return settings


class ScoreStore:
    """Lifetime totals in ``user_scores`` plus in-memory session scores.

    Totals are mirrored in memory so an answer still counts when the
    database is unavailable. The mirror is re-seeded from the row on every
    successful read or write, so a fallback total starts from the viewer's
    lifetime score rather than from zero.
    """

    def __init__(self, app):
        self.app = app
        self._lock = threading.Lock()
        self._totals: Dict[str, int] = {}
        self._session: Dict[str, int] = {}

    @staticmethod
    def clean_id(user_id) -> str:
        return str(user_id).strip()

    def add_points(self, user_id, points: int, username: Optional[str] = None) -> Tuple[int, int]:
        uid = self.clean_id(user_id)
        with self._lock:
            self._totals[uid] = self._totals.get(uid, 0) + points
            self._session[uid] = self._session.get(uid, 0) + points
            total, session = self._totals[uid], self._session[uid]

        stored = None
        try:
            with self.app.app_context():
                row = db.session.get(UserScore, uid)
                if row is None:
                    row = UserScore(user_id=uid, username=username, score=0)
                stored = row.score or 0
                row.score = stored + points
                row.last_updated = datetime.now(timezone.utc)
                if username and (not row.username or row.username.startswith('User-')):
                    row.username = username
                db.session.add(row)
                db.session.commit()
                total = row.score
            with self._lock:
                self._totals[uid] = total
        except Exception as exc:
            if stored is not None:
                # Row was readable: keep its lifetime total
                with self._lock:
                    self._totals[uid] = max(self._totals.get(uid, 0), stored + points)
                    total = self._totals[uid]
            self.app.logger.error(f"[score-error] user={uid} database update failed, keeping memory score: {exc}")
        self.app.logger.info(f"[score] user={uid} +{points} total={total} session={session}")
        return total, session

    def get(self, user_id) -> Tuple[int, int]:
        uid = self.clean_id(user_id)
        with self._lock:
            session = self._session.get(uid, 0)
            total = self._totals.get(uid, 0)
        try:
            with self.app.app_context():
                row = db.session.get(UserScore, uid)
                if row is not None:
                    total = row.score
            if row is not None:
                with self._lock:
                    self._totals[uid] = total
        except Exception as exc:
            self.app.logger.error(f"[score-error] user={uid} lookup failed, using memory score: {exc}")
        return total, session

    def reset_session(self) -> None:
        with self._lock:
            self._session = {}
        self.app.logger.info("[score] session scores reset")

    def _usernames(self, user_ids: Sequence[str]) -> Dict[str, Optional[str]]:
        if not user_ids:
            return {}
        rows = UserScore.query.filter(UserScore.user_id.in_(list(user_ids))).all()
        return {r.user_id: r.username for r in rows}

    def leaderboard(self, limit: int = 20) -> Dict[str, List[Dict[str, object]]]:
        with self._lock:
            session = sorted(self._session.items(), key=lambda kv: kv[1], reverse=True)[:limit]
        with self.app.app_context():
            top = UserScore.query.order_by(UserScore.score.desc()).limit(limit).all()
            total_board = [
                {'userId': r.user_id, 'username': display_name(r.user_id, r.username), 'score': r.score}
                for r in top
            ]
            names = self._usernames([uid for uid, _ in session])
        session_board = [
            {'userId': uid, 'username': display_name(uid, names.get(uid)), 'score': score}
            for uid, score in session
        ]
        return {'total': total_board, 'session': session_board}

    def export_rows(self) -> List[Tuple[str, str, int, str]]:
        """Rows for the CSV export; memory-only users are flagged as such."""
        with self.app.app_context():
            rows = UserScore.query.order_by(UserScore.score.desc()).all()
            exported = [
                (r.user_id, display_name(r.user_id, r.username), r.score,
                 r.last_updated.isoformat() if r.last_updated else '')
                for r in rows
            ]
        known = {row[0] for row in exported}
        with self._lock:
            memory_only = [(uid, s) for uid, s in self._totals.items() if uid not in known]
        exported.extend((uid, display_name(uid, None), s, 'memory-only') for uid, s in memory_only)
        return exported


def display_name(user_id, username) -> str:
    if username:
        return username
    return f"User-{str(user_id)[:5]}"
