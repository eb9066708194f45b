# Download routes - the audio download endpoint
import logging

from flask import Blueprint, current_app, request

from errors import AudioProxyError, InvalidUrlError, UnknownExtractionError
from services.cleanup import arm_cleanup
from services.streamer import stream_artifact
from utils.helpers import (
    allocate_output_path,
    build_download_name,
    is_valid_youtube_url,
    timestamp_ms,
)

log = logging.getLogger(__name__)

download_bp = Blueprint("download", __name__)


@download_bp.route("/download", methods=["GET"])
def download():
    """
    Extract the audio track of a YouTube video and stream it back as mp3.

    Query parameters:
        url: watch, youtu.be or shorts link of the video
    """
    url = request.args.get("url", "")
    log.info("Received download request for URL: %s", url)

    if not is_valid_youtube_url(url):
        log.warning("Invalid URL provided: %s", url)
        raise InvalidUrlError(url)

    extractor = current_app.extensions["audio_extractor"]
    stamp = timestamp_ms()
    job = extractor.create_job(url, allocate_output_path(current_app.config["DOWNLOADS_DIR"]))
    token = arm_cleanup(job)

    try:
        log.info("Starting download process...")
        extractor.invoke(job)
        return stream_artifact(token, build_download_name(stamp))
    except AudioProxyError:
        token.fire("request failed")
        raise
    except Exception as e:
        token.fire("request failed")
        log.exception("Download process error")
        raise UnknownExtractionError(str(e)) from e
