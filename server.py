# WSGI server wrapper - threaded serving with graceful shutdown on SIGTERM / SIGINT
import logging
import os
import signal
import threading

from werkzeug.serving import make_server
from werkzeug.wsgi import ClosingIterator

log = logging.getLogger(__name__)


class InFlightTracker:
    """
    WSGI middleware counting responses that have not been closed yet.

    A streamed download counts as in flight until the server closes its
    iterable, so shutdown can wait for transfers to finish.
    """

    def __init__(self, app):
        self.app = app
        self._active = 0
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()

    @property
    def active(self) -> int:
        return self._active

    def _enter(self):
        with self._lock:
            self._active += 1
            self._idle.clear()

    def _leave(self):
        with self._lock:
            self._active -= 1
            if self._active <= 0:
                self._active = 0
                self._idle.set()

    def wait_idle(self, timeout=None) -> bool:
        return self._idle.wait(timeout)

    def __call__(self, environ, start_response):
        self._enter()
        try:
            app_iter = self.app(environ, start_response)
        except BaseException:
            self._leave()
            raise
        return ClosingIterator(app_iter, self._leave)


def serve(app, host: str, port: int, grace_period: float = 10, on_shutdown=()) -> int:
    """
    Serve app until a termination signal arrives. Returns the process exit code.

    On SIGTERM / SIGINT the listening socket stops accepting, in-flight
    responses get grace_period seconds to finish, then on_shutdown callbacks
    run. Exit code is 1 if the grace period ran out.
    """
    tracker = InFlightTracker(app.wsgi_app)
    app.wsgi_app = tracker
    server = make_server(host, port, app, threaded=True)
    stopping = threading.Event()

    def handle_signal(signum, frame):
        if stopping.is_set():
            return
        stopping.set()
        log.info("Received shutdown signal (%s)", signal.Signals(signum).name)
        # shutdown() blocks until serve_forever() returns, so not from this thread
        threading.Thread(target=server.shutdown, name="shutdown", daemon=True).start()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        server.serve_forever()
    finally:
        server.server_close()
        log.info("HTTP server closed")

    exit_code = 0
    if not tracker.wait_idle(grace_period):
        log.error("Forced shutdown after timeout (%d response(s) still open)", tracker.active)
        exit_code = 1

    for callback in on_shutdown:
        callback()
    return exit_code


def force_exit(exit_code: int):
    """
    End the process now, without joining worker threads.

    A plain sys.exit would block in the interpreter's exit hooks until every
    extraction thread returned, which can take minutes.
    """
    logging.shutdown()
    os._exit(exit_code)
