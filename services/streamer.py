# Streaming service - sends a finished artifact to the client in chunks
import logging
import os

from flask import Response

from errors import StreamError

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def stream_artifact(token, download_name: str, chunk_size: int = CHUNK_SIZE, opener=open) -> Response:
    """
    Build a streaming response for token.output_path.

    The artifact is removed through the cleanup token when the stream ends,
    when reading fails, or when the client goes away, whichever happens first.
    If the file cannot be opened the response is not committed yet, so the
    token fires and StreamError propagates to become a 500.
    """
    path = token.output_path
    try:
        size = os.path.getsize(path)
        handle = opener(path, 'rb')
    except OSError as e:
        log.error("Error opening %s for streaming: %s", path, e)
        token.fire("stream error")
        raise StreamError(str(e)) from e

    def finish(reason):
        handle.close()
        token.fire(reason)

    def generate():
        reason = "client disconnected"
        try:
            while True:
                try:
                    chunk = handle.read(chunk_size)
                except OSError as e:
                    # Headers are already on the wire; the only option left is
                    # to abort so the server drops the connection.
                    reason = "stream error"
                    log.error("Error streaming file: %s", e)
                    raise StreamError(str(e)) from e
                if not chunk:
                    reason = "stream complete"
                    break
                yield chunk
        finally:
            finish(reason)

    response = Response(generate(), mimetype='audio/mpeg')
    response.headers['Content-Length'] = str(size)
    response.headers['Content-Disposition'] = f'attachment; filename="{download_name}"'
    # Covers a client that leaves before the body is ever iterated
    response.call_on_close(lambda: finish("response closed"))
    return response
