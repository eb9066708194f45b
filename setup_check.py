# Setup check - prepares directories and reports missing runtime dependencies
import subprocess
import sys
from importlib import metadata

from config import Settings
from services.extractor import find_ffmpeg
from utils.helpers import ensure_directory

REQUIRED_PYTHON = (3, 9)


def check_directories(settings: Settings) -> bool:
    ok = True
    for directory in (settings.downloads_dir, settings.public_dir):
        try:
            if ensure_directory(directory):
                print(f"[OK] Created directory: {directory}")
            else:
                print(f"[--] Directory already exists: {directory}")
        except OSError as e:
            print(f"[FAIL] Failed to create directory {directory}: {e}")
            ok = False
    return ok


def check_python() -> bool:
    current = sys.version_info[:3]
    required = '.'.join(map(str, REQUIRED_PYTHON))
    if current >= REQUIRED_PYTHON:
        print(f"[OK] Python {'.'.join(map(str, current))} (required: {required}+)")
        return True
    print(f"[FAIL] Python {'.'.join(map(str, current))} is below the required version {required}")
    return False


def check_yt_dlp() -> bool:
    try:
        version = metadata.version('yt-dlp')
    except metadata.PackageNotFoundError:
        print("[FAIL] yt-dlp is not installed. Run: pip install yt-dlp")
        return False
    print(f"[OK] yt-dlp {version} is installed")
    return True


def check_ffmpeg() -> bool:
    ffmpeg_path = find_ffmpeg()
    if not ffmpeg_path:
        print("[FAIL] FFmpeg is not installed (needed for mp3 conversion)")
        return False
    try:
        subprocess.run([ffmpeg_path, '-version'], check=True, capture_output=True, timeout=15)
    except (OSError, subprocess.SubprocessError) as e:
        print(f"[FAIL] FFmpeg at {ffmpeg_path} does not run: {e}")
        return False
    print(f"[OK] FFmpeg is installed at {ffmpeg_path}")
    return True


def main() -> int:
    print("=" * 60)
    print("YouTube Audio Downloader - Setup")
    print("=" * 60)

    settings = Settings.from_env()
    results = [
        check_directories(settings),
        check_python(),
        check_yt_dlp(),
        check_ffmpeg(),
    ]

    print("=" * 60)
    if all(results):
        print("Setup completed! Start the server with: yt-audio-proxy")
        return 0
    print("Setup finished with problems, see above.")
    return 1


if __name__ == '__main__':
    sys.exit(main())
