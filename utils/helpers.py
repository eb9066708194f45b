# Shared utility functions for URL validation and artifact naming

import os
import re
import secrets
import string
import time

# Standard watch links, youtu.be short links and /shorts/ with an 11 char video id
YOUTUBE_URL_RE = re.compile(
    r'^(https?://)?(www\.)?(youtube\.com/(watch\?v=|shorts/)|youtu\.be/)[\w-]{11}(\?.*)?$'
)

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def is_valid_youtube_url(url) -> bool:
    """Check that url looks like a YouTube video link. No network access."""
    if not url or not isinstance(url, str):
        return False
    return YOUTUBE_URL_RE.fullmatch(url) is not None


def timestamp_ms() -> int:
    return time.time_ns() // 1_000_000


def random_token(length: int = 8) -> str:
    return ''.join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def allocate_output_path(directory: str, extension: str = '.mp3') -> str:
    """
    Reserve a unique artifact path inside directory.
    The file itself is not created; the extraction tool writes it.
    """
    filename = f"audio_{timestamp_ms()}_{random_token()}{extension}"
    return os.path.join(directory, filename)


def build_download_name(stamp: int = None) -> str:
    """Human readable attachment name sent in Content-Disposition."""
    return f"youtube_audio_{stamp if stamp is not None else timestamp_ms()}.mp3"


def ensure_directory(directory: str) -> bool:
    """Create directory if missing. Returns True when it had to be created."""
    if os.path.isdir(directory):
        return False
    os.makedirs(directory, exist_ok=True)
    return True
