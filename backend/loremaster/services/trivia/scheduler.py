from typing import Callable

from loremaster import socketio


class BackgroundScheduler:
    """One-shot deferred callbacks on Socket.IO background tasks."""

    def __init__(self, app, sio=None):
        self.app = app
        self.sio = sio or socketio

    def call_later(self, delay: float, fn: Callable, *args) -> None:
        def _worker():
            self.sio.sleep(delay)
            try:
                fn(*args)
            except Exception:
                self.app.logger.exception(f"[timer-error] deferred {getattr(fn, '__name__', fn)} failed")

        self.sio.start_background_task(_worker)


def start_ticker(app, controller, sio=None) -> bool:
    """Run ``controller.tick()`` every TICK_INTERVAL_SEC on a background task.

    - No-ops in TESTING mode unless ENABLE_TICKER_IN_TESTS is set
    - Only one ticker per app
    - A failing tick is logged and the loop keeps going
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_TICKER_IN_TESTS'):
        return False
    if app.extensions.get('trivia_ticker'):
        app.logger.info("[ticker-skip] already running")
        return False
    app.extensions['trivia_ticker'] = True
    sio = sio or socketio
    interval = float(app.config.get('TICK_INTERVAL_SEC', 1))

    def _loop():
        app.logger.info(f"[ticker-start] interval={interval}s")
        while True:
            sio.sleep(interval)
            try:
                controller.tick()
            except Exception:
                app.logger.exception("[ticker-error] tick failed")

    sio.start_background_task(_loop)
    return True
