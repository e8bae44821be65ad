"""Trivia domain services: scoring, question selection and the round controller.

Routes and socket handlers import from here; transport concerns stay out of
the core game mechanics.
"""

from flask import current_app

from .broadcast import SocketIOBroadcastChannel
from .controller import RoundController
from .scheduler import BackgroundScheduler, start_ticker
from .selector import QuestionSelector
from .stores import QuestionStore, ScoreStore, SettingsStore


EXTENSION_KEY = 'round_controller'


def build_controller(app) -> RoundController:
    question_store = QuestionStore(app)
    selector = QuestionSelector(
        question_store,
        app.logger,
        reset_threshold=int(app.config.get('USED_QUESTION_RESET_THRESHOLD', 10)),
    )
    controller = RoundController(
        app,
        selector=selector,
        settings_store=SettingsStore(app),
        score_store=ScoreStore(app),
        channel=SocketIOBroadcastChannel(app),
        scheduler=BackgroundScheduler(app),
        grace_ms=int(app.config.get('QUESTION_GRACE_MS', 5000)),
    )
    app.extensions[EXTENSION_KEY] = controller
    return controller


def get_controller(app=None) -> RoundController:
    app = app or current_app
    return app.extensions[EXTENSION_KEY]


__all__ = [
    'build_controller',
    'get_controller',
    'start_ticker',
    'RoundController',
    'QuestionSelector',
]
