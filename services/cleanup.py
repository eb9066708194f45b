# Cleanup service - one-shot removal of a job's temporary artifact
import glob
import logging
import os
import threading

log = logging.getLogger(__name__)


def artifact_paths(output_path: str) -> list:
    """
    Every file that belongs to an artifact: the final file plus whatever
    yt-dlp left next to it under the same stem (<stem>.webm, <stem>.webm.part, ...).
    """
    stem = os.path.splitext(output_path)[0]
    paths = [output_path]
    for candidate in glob.glob(glob.escape(stem) + '.*'):
        if candidate not in paths:
            paths.append(candidate)
    return paths


def remove_artifact(output_path: str) -> int:
    """
    Delete an artifact and its intermediates. Absent files are fine.
    Errors are logged, never raised. Returns the number of files removed.
    """
    removed = 0
    for path in artifact_paths(output_path):
        try:
            os.remove(path)
            removed += 1
        except FileNotFoundError:
            log.debug("Artifact already gone: %s", path)
        except OSError as e:
            log.error("Error removing file %s: %s", path, e)
    return removed


class CleanupToken:
    """
    Fires the removal of one artifact at most once.

    Stream end, stream error, client disconnect and extraction failure all call
    fire(); only the first call does any work.
    """

    def __init__(self, output_path: str):
        self.output_path = output_path
        self._fired = False
        self._lock = threading.Lock()

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self, reason: str = "") -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
        removed = remove_artifact(self.output_path)
        if removed:
            log.info("Temporary file removed%s", f" ({reason})" if reason else "")
        return True


def arm_cleanup(job) -> CleanupToken:
    """Create the cleanup token owning job.output_path."""
    return CleanupToken(job.output_path)
