# Reaper service - periodic sweep of orphaned artifacts in the downloads directory
import logging
import os
import threading
import time

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 15 * 60
DEFAULT_MAX_AGE = 60 * 60


def sweep_old_files(directory: str, max_age: float = DEFAULT_MAX_AGE, now: float = None) -> list:
    """
    Remove every regular file in directory last modified more than max_age
    seconds ago. A file that cannot be removed is logged and skipped.
    Returns the names that were removed.
    """
    now = time.time() if now is None else now
    removed = []

    try:
        entries = list(os.scandir(directory))
    except OSError as e:
        log.error("Error during cleanup of %s: %s", directory, e)
        return removed

    for entry in entries:
        try:
            if not entry.is_file(follow_symlinks=False):
                continue
            if now - entry.stat(follow_symlinks=False).st_mtime <= max_age:
                continue
            os.remove(entry.path)
        except FileNotFoundError:
            # removed by its own request in the meantime
            continue
        except OSError as e:
            log.error("Error removing old file %s: %s", entry.name, e)
            continue
        removed.append(entry.name)
        log.info("Cleaned up old file: %s", entry.name)

    return removed


class PeriodicReaper(threading.Thread):
    """Background thread running sweep_old_files every interval seconds."""

    def __init__(self, directory: str, interval: float = DEFAULT_INTERVAL, max_age: float = DEFAULT_MAX_AGE):
        super().__init__(name='reaper', daemon=True)
        self.directory = directory
        self.interval = interval
        self.max_age = max_age
        self._stop_event = threading.Event()

    def run(self):
        log.debug("Reaper started (every %ss, max age %ss)", self.interval, self.max_age)
        while not self._stop_event.wait(self.interval):
            sweep_old_files(self.directory, self.max_age)

    def stop(self, timeout: float = None):
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)
