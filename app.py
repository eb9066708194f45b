# Main Flask Application - Entry Point
# YouTube to mp3 download proxy: /download plus health, version and static pages
import logging
import os
import platform
import threading
import webbrowser
from importlib import metadata

from flask import Flask, Response, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_limiter import Limiter, RateLimitExceeded
from flask_limiter.util import get_remote_address

from config import Settings
from errors import AudioProxyError
from routes.download import download_bp
from server import force_exit, serve
from services.extractor import AudioExtractor, verify_ffmpeg
from services.reaper import PeriodicReaper, sweep_old_files
from utils.helpers import ensure_directory
from utils.logger import setup_logger

log = logging.getLogger(__name__)

APP_DISTRIBUTION = "yt-audio-proxy"

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


def _package_version(name: str, default: str = "unknown") -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return default


def create_app(settings: Settings = None, extractor: AudioExtractor = None) -> Flask:
    """Build the Flask app. Tests pass their own settings and a fake extractor."""
    settings = settings or Settings.from_env()

    app = Flask(__name__, static_folder=settings.public_dir, static_url_path="")
    app.config["SETTINGS"] = settings
    app.config["DOWNLOADS_DIR"] = settings.downloads_dir

    if extractor is None:
        extractor = AudioExtractor(
            timeout=settings.extraction_timeout,
            debug=settings.debug,
            max_workers=settings.extraction_workers,
            ffmpeg_location=verify_ffmpeg(),
        )
    app.extensions["audio_extractor"] = extractor

    # --- Rate limiting ---
    # One limiter per app so each instance keeps its own in-memory counters
    limiter = Limiter(get_remote_address, app=app, storage_uri="memory://", headers_enabled=True)
    if settings.rate_limit_max > 0:
        # Preflight requests are answered by flask-cors and not counted
        limiter.limit(
            f"{settings.rate_limit_max} per {settings.rate_limit_window} seconds",
            exempt_when=lambda: request.method == "OPTIONS",
        )(download_bp)

    # Browsers need Content-Disposition exposed to read the generated filename
    CORS(app, resources={r"/download": {
        "origins": settings.cors_origins,
        "methods": ["GET", "OPTIONS"],
        "expose_headers": ["Content-Disposition", "Content-Length"],
        "supports_credentials": False,
    }})

    @app.after_request
    def add_security_headers(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.register_blueprint(download_bp)

    @app.route("/", methods=["GET"])
    def index():
        return send_from_directory(settings.public_dir, "index.html")

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint"""
        log.info("Health check requested")
        return Response("Server is healthy", status=200, mimetype="text/plain")

    @app.route("/version", methods=["GET"])
    def version():
        versions = {
            "python": platform.python_version(),
            "flask": _package_version("flask"),
            "yt_dlp": _package_version("yt-dlp", "latest"),
            "app": _package_version(APP_DISTRIBUTION, "1.0.0"),
        }
        log.info("Version info: %s", versions)
        return jsonify(versions)

    # Error handlers
    @app.errorhandler(RateLimitExceeded)
    def rate_limited(error):
        log.warning("Rate limit exceeded for %s (%s)", get_remote_address(), error.description)
        return Response(
            "Too many requests from this IP, please try again later.",
            status=429,
            mimetype="text/plain",
        )

    @app.errorhandler(AudioProxyError)
    def audio_proxy_error(error):
        return Response(error.public_message, status=error.status_code, mimetype="text/plain")

    @app.errorhandler(404)
    def not_found(error):
        page = os.path.join(settings.public_dir, "404.html")
        if os.path.isfile(page):
            return send_from_directory(settings.public_dir, "404.html"), 404
        return Response("Not found", status=404, mimetype="text/plain")

    @app.errorhandler(500)
    def internal_server_error(error):
        log.error("Unhandled error: %s", getattr(error, "original_exception", error))
        return Response("Something went wrong!", status=500, mimetype="text/plain")

    return app


def bootstrap(settings: Settings) -> PeriodicReaper:
    """
    One-time preparation before the server accepts connections: storage
    directory, initial sweep of leftovers, background reaper.
    """
    if ensure_directory(settings.downloads_dir):
        log.info("Created directory: %s", settings.downloads_dir)
    sweep_old_files(settings.downloads_dir, settings.file_retention)

    reaper = PeriodicReaper(
        settings.downloads_dir,
        interval=settings.cleanup_interval,
        max_age=settings.file_retention,
    )
    reaper.start()
    return reaper


def _open_browser(url: str):
    try:
        webbrowser.open(url)
    except webbrowser.Error as e:
        log.error("Failed to open browser: %s", e)


def schedule_browser_open(url: str, delay: float = 1.0) -> threading.Timer:
    # Daemon, so a quick shutdown does not wait on it
    timer = threading.Timer(delay, _open_browser, args=[url])
    timer.daemon = True
    timer.start()
    return timer


def main():
    settings = Settings.from_env()
    setup_logger(debug=settings.debug, log_dir=settings.log_dir)

    reaper = bootstrap(settings)
    app = create_app(settings)
    extractor = app.extensions["audio_extractor"]

    base_url = f"http://localhost:{settings.port}"
    log.info("Server running at %s (environment: %s)", base_url, settings.environment)
    log.info("Available endpoints:")
    log.info("- Download: %s/download?url=YOUTUBE_URL", base_url)
    log.info("- Health: %s/health", base_url)
    log.info("- Version: %s/version", base_url)

    # Auto-open browser if not in production
    if not settings.is_production:
        schedule_browser_open(base_url)

    exit_code = serve(
        app,
        settings.host,
        settings.port,
        grace_period=settings.shutdown_grace,
        on_shutdown=(reaper.stop, extractor.shutdown),
    )
    force_exit(exit_code)


if __name__ == "__main__":
    main()
