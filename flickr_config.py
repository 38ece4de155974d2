from dataclasses import dataclass
from typing import Optional, Tuple

from starlette.config import Config

REST_ENDPOINT = "https://api.flickr.com/services/rest/"
UPLOAD_ENDPOINT = "https://api.flickr.com/services/upload/"
REPLACE_ENDPOINT = "https://api.flickr.com/services/replace/"
OAUTH_ENDPOINT = "https://www.flickr.com/services/oauth/"
AUTHORIZE_URL = "https://www.flickr.com/services/oauth/authorize"
API_HOST = "api.flickr.com"


@dataclass(frozen=True)
class FlickrConfig:
    """Endpoints and transport settings handed to every request.

    Attributes:
        rest_endpoint: REST endpoint for signed and authenticated calls
        upload_endpoint: Multipart endpoint for new photos
        replace_endpoint: Multipart endpoint for replacing a photo
        oauth_endpoint: Base URL of request_token / access_token
        authorize_url: User-facing authorization page
        api_host: Host header sent with upload/replace POSTs
        timeout: HTTP timeout in seconds for short-lived clients
    """

    rest_endpoint: str = REST_ENDPOINT
    upload_endpoint: str = UPLOAD_ENDPOINT
    replace_endpoint: str = REPLACE_ENDPOINT
    oauth_endpoint: str = OAUTH_ENDPOINT
    authorize_url: str = AUTHORIZE_URL
    api_host: str = API_HOST
    timeout: float = 30.0

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "FlickrConfig":
        """Load endpoint overrides from the environment, then from env_file."""
        config = Config(env_file)
        return cls(
            rest_endpoint=config("FLICKR_REST_ENDPOINT", cast=str, default=REST_ENDPOINT),
            upload_endpoint=config("FLICKR_UPLOAD_ENDPOINT", cast=str, default=UPLOAD_ENDPOINT),
            replace_endpoint=config("FLICKR_REPLACE_ENDPOINT", cast=str, default=REPLACE_ENDPOINT),
            oauth_endpoint=config("FLICKR_OAUTH_ENDPOINT", cast=str, default=OAUTH_ENDPOINT),
            authorize_url=config("FLICKR_AUTHORIZE_URL", cast=str, default=AUTHORIZE_URL),
            api_host=config("FLICKR_API_HOST", cast=str, default=API_HOST),
            timeout=config("FLICKR_TIMEOUT", cast=float, default=30.0),
        )


class Credentials:
    """Caller credentials read from the environment. Nothing is persisted."""

    @staticmethod
    def from_env(env_file: Optional[str] = ".env") -> Tuple[str, str, str]:
        """Return (api_key, api_secret, callback_url)."""
        config = Config(env_file)
        api_key = config("FLICKR_API_KEY", cast=str, default="")
        api_secret = config("FLICKR_API_SECRET", cast=str, default="")
        callback_url = config(
            "CALLBACK_URL", cast=str, default="http://localhost:8000/callback"
        )
        return api_key, api_secret, callback_url
