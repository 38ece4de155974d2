from typing import Optional

# Exceptions raised by the Flickr request client


class FlickrError(Exception):
    """Base class for every error raised by this client."""


class FlickrConfigError(FlickrError):
    """Raised when a request is missing its API key, method or OAuth credentials.

    Always raised before any network access happens.
    """


class FlickrResponseError(FlickrError):
    """Raised when a response body cannot be parsed as XML, JSON or a token body."""

    def __init__(self, message: str, body: Optional[str] = None):
        super().__init__(message)
        self.body = body


class FlickrAPIError(FlickrError):
    """Raised when Flickr answers with ``stat="fail"``.

    Attributes:
        code: Numeric Flickr error code
        message: Error message text sent by Flickr
    """

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"Response error: Code: {code}; Message: {message}")
