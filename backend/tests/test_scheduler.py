import logging

import pytest

from loremaster.services.trivia.scheduler import BackgroundScheduler, start_ticker


class StopLoop(Exception):
    pass


class FakeSocketIO:
    """Records background tasks; ``run_tasks`` executes them inline."""

    def __init__(self, max_sleeps=None):
        self.tasks = []
        self.sleeps = []
        self.max_sleeps = max_sleeps

    def start_background_task(self, fn, *args):
        self.tasks.append((fn, args))

    def sleep(self, seconds):
        if self.max_sleeps is not None and len(self.sleeps) >= self.max_sleeps:
            raise StopLoop()
        self.sleeps.append(seconds)

    def run_tasks(self):
        tasks, self.tasks = self.tasks, []
        for fn, args in tasks:
            fn(*args)


class CountingController:
    def __init__(self, fail_on=()):
        self.ticks = 0
        self.fail_on = set(fail_on)

    def tick(self):
        self.ticks += 1
        if self.ticks in self.fail_on:
            raise RuntimeError('tick blew up')


def test_call_later_sleeps_then_runs(flask_app):
    sio = FakeSocketIO()
    calls = []
    BackgroundScheduler(flask_app, sio=sio).call_later(2.5, calls.append, 'fired')
    assert calls == []
    sio.run_tasks()
    assert sio.sleeps == [2.5]
    assert calls == ['fired']


def test_call_later_logs_failing_callback(flask_app, caplog):
    sio = FakeSocketIO()

    def boom():
        raise RuntimeError('nope')

    BackgroundScheduler(flask_app, sio=sio).call_later(1, boom)
    with caplog.at_level(logging.ERROR):
        sio.run_tasks()
    assert any('[timer-error]' in r.getMessage() for r in caplog.records)


def test_ticker_is_off_under_testing(flask_app):
    sio = FakeSocketIO()
    assert start_ticker(flask_app, CountingController(), sio=sio) is False
    assert sio.tasks == []
    assert 'trivia_ticker' not in flask_app.extensions


def test_only_one_ticker_per_app(flask_app):
    flask_app.config['ENABLE_TICKER_IN_TESTS'] = True
    sio = FakeSocketIO()
    assert start_ticker(flask_app, CountingController(), sio=sio) is True
    assert start_ticker(flask_app, CountingController(), sio=sio) is False
    assert len(sio.tasks) == 1


def test_failing_tick_is_logged_and_loop_continues(flask_app, caplog):
    flask_app.config['ENABLE_TICKER_IN_TESTS'] = True
    flask_app.config['TICK_INTERVAL_SEC'] = 1
    sio = FakeSocketIO(max_sleeps=3)
    controller = CountingController(fail_on={2})
    start_ticker(flask_app, controller, sio=sio)

    with caplog.at_level(logging.ERROR):
        with pytest.raises(StopLoop):
            sio.run_tasks()

    assert controller.ticks == 3
    assert sio.sleeps == [1.0, 1.0, 1.0]
    assert sum('[ticker-error]' in r.getMessage() for r in caplog.records) == 1
