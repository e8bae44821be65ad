import os
import sys
import pytest

# Ensure the backend root (containing the `loremaster` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from loremaster import create_app, db, socketio
from loremaster.services.trivia import get_controller
from loremaster.services.trivia.controller import RoundController
from loremaster.services.trivia.selector import Question, QuestionSelector
from loremaster.services.trivia.settings import Settings


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    DEFAULT_BROADCASTER_ID = 'chan-1'
    DEFAULT_ANSWER_TIME_MS = 30000
    DEFAULT_INTERVAL_MS = 600000
    QUESTION_GRACE_MS = 5000
    USED_QUESTION_RESET_THRESHOLD = 10
    LEADERBOARD_LIMIT = 20


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class ManualScheduler:
    """Collects deferred callbacks; tests fire them explicitly."""

    def __init__(self):
        self.pending = []

    def call_later(self, delay, fn, *args):
        self.pending.append((delay, fn, args))

    def run_all(self):
        pending, self.pending = self.pending, []
        for _, fn, args in pending:
            fn(*args)
        return len(pending)


class RecordingChannel:
    def __init__(self):
        self.events = []
        self.fail_types = set()

    def publish(self, channel_id, event):
        if event.type in self.fail_types:
            return False
        self.events.append((channel_id, event))
        return True

    def types(self):
        return [e.type for _, e in self.events]


class MemoryQuestionStore:
    """Deterministic question store: returns the first matching question."""

    def __init__(self, questions=()):
        self.questions = list(questions)
        self.calls = []
        self.fail = False

    def _matching(self, categories, difficulties, exclude_ids=()):
        exclude = set(exclude_ids or ())
        return [
            q for q in self.questions
            if (not categories or q.category_id in categories)
            and (not difficulties or q.difficulty in difficulties)
            and q.id not in exclude
        ]

    def random_question(self, categories=None, difficulties=None, exclude_ids=None):
        self.calls.append((categories, difficulties, list(exclude_ids or [])))
        if self.fail:
            raise ConnectionError('database unavailable')
        matches = self._matching(categories, difficulties, exclude_ids)
        return matches[0] if matches else None

    def count(self, categories=None, difficulties=None):
        return len(self._matching(categories, difficulties))

    def sample(self, categories=None, difficulties=None, limit=5):
        return [{'id': q.id, 'question': q.text} for q in self._matching(categories, difficulties)[:limit]]


class MemorySettingsStore:
    def __init__(self, settings=None):
        self.settings = settings or Settings()

    def get(self, broadcaster_id):
        return self.settings

    def put(self, broadcaster_id, settings):
        self.settings = settings
        return settings


class MemoryScoreStore:
    def __init__(self):
        self.totals = {}
        self.session = {}

    def add_points(self, user_id, points, username=None):
        self.totals[user_id] = self.totals.get(user_id, 0) + points
        self.session[user_id] = self.session.get(user_id, 0) + points
        return self.totals[user_id], self.session[user_id]

    def get(self, user_id):
        return self.totals.get(user_id, 0), self.session.get(user_id, 0)

    def reset_session(self):
        self.session = {}


def make_question(qid, category='science', difficulty='Easy'):
    return Question(
        id=qid,
        text=f'Question {qid}?',
        correct_answer=f'right-{qid}',
        wrong_answers=(f'wrong-{qid}-a', f'wrong-{qid}-b', f'wrong-{qid}-c'),
        category_id=category,
        difficulty=difficulty,
    )


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import loremaster.models  # noqa: F401
        db.create_all()
        # Deferred question-window resets run only when a test fires them
        get_controller(application).scheduler = ManualScheduler()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def seeded_questions(flask_app):
    from loremaster.models import QuestionCategory, TriviaQuestion
    rows = [
        ('What is 2 + 2?', '4', '3', '5', '22', 'math', 'Easy'),
        ('Capital of Japan?', 'Tokyo', 'Kyoto', 'Osaka', 'Nagoya', 'geography', 'Medium'),
        ('Symbol for gold?', 'Au', 'Ag', 'Go', 'Gd', 'science', 'Hard'),
    ]
    for text, correct, w1, w2, w3, category, difficulty in rows:
        db.session.add(TriviaQuestion(
            question=text, correct_answer=correct,
            wrong_answer1=w1, wrong_answer2=w2, wrong_answer3=w3,
            category_id=category, difficulty=difficulty,
        ))
    db.session.add(QuestionCategory(id='math', name='Mathematics'))
    db.session.commit()
    return rows


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def question_store():
    return MemoryQuestionStore([make_question(i) for i in range(1, 4)])


@pytest.fixture()
def round_parts(flask_app, clock, question_store):
    """A controller wired to in-memory collaborators plus handles to them."""
    selector = QuestionSelector(question_store, flask_app.logger, reset_threshold=10)
    channel = RecordingChannel()
    scheduler = ManualScheduler()
    settings_store = MemorySettingsStore(Settings(answer_time_ms=30000, interval_ms=60000))
    score_store = MemoryScoreStore()
    controller = RoundController(
        flask_app,
        selector=selector,
        settings_store=settings_store,
        score_store=score_store,
        channel=channel,
        scheduler=scheduler,
        clock=clock,
        grace_ms=5000,
    )
    return {
        'controller': controller,
        'selector': selector,
        'channel': channel,
        'scheduler': scheduler,
        'settings_store': settings_store,
        'score_store': score_store,
        'clock': clock,
        'store': question_store,
    }


@pytest.fixture()
def question_factory():
    return make_question
