# Extraction service - runs yt-dlp for one job and bounds it with a deadline
import concurrent.futures
import logging
import os
import shutil
from dataclasses import dataclass, field

import yt_dlp

from errors import (
    CopyrightBlockedError,
    EmptyArtifactError,
    ExtractionTimeoutError,
    UnknownExtractionError,
    VideoUnavailableError,
)
from services.cleanup import remove_artifact

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3 * 60

# Checked in order against the lowercased failure message, first match wins.
# yt-dlp only reports failures as free text, so a reworded message falls
# through to UnknownExtractionError.
ERROR_PATTERNS = (
    ('copyright_claim', CopyrightBlockedError),
    ('video unavailable', VideoUnavailableError),
    ('private video', VideoUnavailableError),
    ('this video is not available', VideoUnavailableError),
)


FFMPEG_FALLBACK_DIRS = ('/usr/bin', '/usr/local/bin', '/opt/homebrew/bin')


def find_ffmpeg(search_path=None):
    """ffmpeg binary for the mp3 post-processor, or None."""
    found = shutil.which('ffmpeg', path=search_path)
    if found:
        return found
    # Service managers often start us with a stripped PATH
    for directory in FFMPEG_FALLBACK_DIRS:
        candidate = os.path.join(directory, 'ffmpeg')
        if os.access(candidate, os.X_OK):
            return candidate
    return None


def verify_ffmpeg():
    location = find_ffmpeg()
    if location is None:
        log.warning("No ffmpeg binary found, extracted audio cannot be converted to mp3")
    else:
        log.info("Using ffmpeg at %s", location)
    return location


def classify_error(message: str) -> type:
    """Map a free-text extraction failure to an ExtractionError subclass."""
    lowered = (message or '').lower()
    for needle, error_cls in ERROR_PATTERNS:
        if needle in lowered:
            return error_cls
    return UnknownExtractionError


class YtDlpLogger:
    """Routes yt-dlp output into the logging tree instead of stdout."""

    def __init__(self):
        self._log = logging.getLogger('yt_dlp')

    def debug(self, msg):
        # yt-dlp sends regular progress lines through debug() too
        self._log.debug(msg)

    def info(self, msg):
        self._log.info(msg)

    def warning(self, msg):
        self._log.warning(msg)

    def error(self, msg):
        self._log.error(msg)


def build_ydl_options(output_path: str, debug: bool = False, ffmpeg_location: str = None) -> dict:
    """
    yt-dlp options for a single audio-only download.

    The output template keeps the artifact stem and lets yt-dlp pick the
    intermediate extension; the mp3 post-processor then writes output_path.
    """
    stem = os.path.splitext(output_path)[0]
    ydl_opts = {
        'format': 'bestaudio/best',
        'outtmpl': stem + '.%(ext)s',
        'postprocessors': [{
            'key': 'FFmpegExtractAudio',
            'preferredcodec': 'mp3',
            'preferredquality': '0',  # best quality
        }],
        'noplaylist': True,
        'no_warnings': True,
        'prefer_free_formats': True,
        'nocheckcertificate': True,  # accepted risk, avoids certificate issues
        'logger': YtDlpLogger(),
    }

    if debug:
        ydl_opts['verbose'] = True
    else:
        ydl_opts['quiet'] = True
        ydl_opts['noprogress'] = True

    if ffmpeg_location:
        ydl_opts['ffmpeg_location'] = ffmpeg_location

    return ydl_opts


def run_yt_dlp(url: str, options: dict) -> None:
    """Blocking yt-dlp call. Raises yt_dlp.utils.DownloadError on failure."""
    with yt_dlp.YoutubeDL(options) as ydl:
        ydl.download([url])


@dataclass
class ExtractionJob:
    source_url: str
    output_path: str
    options: dict = field(default_factory=dict)
    deadline: float = DEFAULT_TIMEOUT


class AudioExtractor:
    """
    Launches extraction jobs on a shared worker pool.

    invoke() waits for whichever settles first: the job or its deadline.
    A job that loses the race while still queued is cancelled. One that
    is already running keeps running in its worker thread since threads
    cannot be killed; whatever it writes afterwards is removed when
    it finishes, and the periodic reaper catches anything missed.
    """

    def __init__(self, timeout=DEFAULT_TIMEOUT, debug=False, max_workers=4,
                 runner=run_yt_dlp, ffmpeg_location=None):
        self.timeout = timeout
        self.debug = debug
        self.runner = runner
        self.ffmpeg_location = ffmpeg_location
        self.executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='extract'
        )

    def create_job(self, url: str, output_path: str) -> ExtractionJob:
        options = build_ydl_options(output_path, debug=self.debug, ffmpeg_location=self.ffmpeg_location)
        return ExtractionJob(source_url=url, output_path=output_path, options=options, deadline=self.timeout)

    def invoke(self, job: ExtractionJob) -> int:
        """
        Run one job. Returns the artifact size in bytes.

        Raises ExtractionTimeoutError, CopyrightBlockedError,
        VideoUnavailableError, EmptyArtifactError or UnknownExtractionError.
        """
        log.debug("Executing yt-dlp for %s with options: %s", job.source_url,
                  {k: v for k, v in job.options.items() if k != 'logger'})

        future = self.executor.submit(self.runner, job.source_url, job.options)
        done, _ = concurrent.futures.wait([future], timeout=job.deadline)

        if not done:
            log.error("Download timeout after %s seconds: %s", job.deadline, job.source_url)
            # A job still queued behind busy workers never starts
            if not future.cancel():
                future.add_done_callback(lambda _f: self._discard_late_artifact(job))
            raise ExtractionTimeoutError(f"Download timeout after {job.deadline} seconds")

        error = future.exception()
        if error is not None:
            message = str(error)
            error_cls = classify_error(message)
            log.error("Extraction failed (%s): %s", error_cls.__name__, message)
            raise error_cls(message) from error

        try:
            size = os.path.getsize(job.output_path)
        except OSError:
            size = 0
        if size == 0:
            raise EmptyArtifactError(f"Downloaded file is empty or missing: {job.output_path}")

        log.info("Download completed successfully (%d bytes)", size)
        return size

    def _discard_late_artifact(self, job: ExtractionJob):
        removed = remove_artifact(job.output_path)
        if removed:
            log.info("Removed artifact of timed-out job after it finished: %s", job.output_path)

    def shutdown(self):
        """Stop taking jobs. Running extractions are left to finish on their own."""
        self.executor.shutdown(wait=False, cancel_futures=True)
