# Error types - every failure the download pipeline can report to a client
#
# Each class carries the HTTP status and the single-line message sent back.
# Internal details (paths, tool output) stay in the logs.


class AudioProxyError(Exception):
    """Base exception for all application-specific errors."""

    status_code = 500
    public_message = "Error processing request. Please try again later."


class InvalidUrlError(AudioProxyError):
    """Raised when the url parameter is missing or not a YouTube video link."""

    status_code = 400
    public_message = "Invalid or missing YouTube URL"


class StreamError(AudioProxyError):
    """Raised when the artifact cannot be read while sending it to the client."""

    public_message = "Error streaming audio file"


class ExtractionError(AudioProxyError):
    """Base class for failures of the extraction step."""


class ExtractionTimeoutError(ExtractionError):
    status_code = 504
    public_message = "Download took too long. Try a shorter video."


class CopyrightBlockedError(ExtractionError):
    status_code = 403
    public_message = "This video cannot be downloaded due to copyright restrictions."


class VideoUnavailableError(ExtractionError):
    status_code = 404
    public_message = "This video is unavailable or private."


class EmptyArtifactError(ExtractionError):
    """Raised when extraction reported success but left no usable file."""


class UnknownExtractionError(ExtractionError):
    """Raised for extraction failures that match no known message."""
