import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

import httpx

from flickr_config import FlickrConfig
from flickr_errors import FlickrAPIError, FlickrConfigError, FlickrResponseError
from flickr_upload import Response, build_post, send_post
from flickr_utils import (
    encode_query,
    get_nonce,
    md5_signature,
    oauth_signature,
    parse_token_response,
    timestamp,
)

logger = logging.getLogger(__name__)


@dataclass
class OAuth:
    """OAuth 1.0a credentials attached to a Request.

    Attributes:
        consumer_secret: Flickr API secret, used as the consumer secret
        callback: Callback URL sent with the request token call
        oauth_token: Access token for authenticated calls
        oauth_token_secret: Access token secret for authenticated calls
    """

    consumer_secret: str
    callback: str = ""
    oauth_token: str = ""
    oauth_token_secret: str = ""


class Request:
    """A single Flickr API call: API key, method name and string arguments.

    The request is mutable and owned by the caller. ``sign``, ``url`` and the
    OAuth operations add and remove entries in ``args`` as they go, so one
    Request should not be shared between concurrent calls.

    Attributes:
        api_key (str): Flickr API key (OAuth consumer key)
        method (str): Flickr method name, e.g. ``flickr.photos.getInfo``
        args (dict): Ordered string-to-string parameters
        oauth (OAuth): Credentials for the OAuth operations, if any
        config (FlickrConfig): Endpoints and timeout
        client (httpx.Client): Injected HTTP client; a short-lived one is
            opened per call when None
    """

    def __init__(
        self,
        api_key: str = "",
        method: str = "",
        args: Optional[Dict[str, str]] = None,
        oauth: Optional[OAuth] = None,
        config: Optional[FlickrConfig] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.method = method
        self.args = dict(args) if args else {}
        self.oauth = oauth
        self.config = config or FlickrConfig()
        self.client = client

    @contextmanager
    def _http(self) -> Iterator[httpx.Client]:
        if self.client is not None:
            yield self.client
            return
        with httpx.Client(timeout=self.config.timeout) as client:
            yield client

    def _get(self, url: str) -> str:
        with self._http() as client:
            resp = client.get(url)
            return resp.text

    def _require_oauth(self) -> OAuth:
        if self.oauth is None:
            raise FlickrConfigError("OAuth credentials are required for this call")
        return self.oauth

    def _oauth_params(self) -> Dict[str, str]:
        return {
            "oauth_nonce": get_nonce(),
            "oauth_timestamp": timestamp(),
            "oauth_consumer_key": self.api_key,
            "oauth_signature_method": "HMAC-SHA1",
            "oauth_version": "1.0",
        }

    def sign(self, secret: str) -> None:
        """Add the legacy MD5 ``api_sig`` to args.

        ``api_key`` and ``method`` take part in the signature but are removed
        again afterwards; ``url`` puts them back.
        """
        args = self.args
        args.pop("api_sig", None)
        args["api_key"] = self.api_key
        args["method"] = self.method
        signature = md5_signature(secret, args)
        del args["api_key"]
        del args["method"]
        args["api_sig"] = signature

    def url(self) -> str:
        self.args["api_key"] = self.api_key
        self.args["method"] = self.method
        return f"{self.config.rest_endpoint}?{encode_query(self.args)}"

    def execute(self) -> str:
        """GET the signed REST URL and return the body text.

        Raises:
            FlickrConfigError: API key or method is empty
            httpx.HTTPError: The request could not be completed
        """
        if not self.api_key or not self.method:
            raise FlickrConfigError("Need both API key and method")
        logger.debug("GET %s method=%s", self.config.rest_endpoint, self.method)
        return self._get(self.url())

    def request_token(self) -> Dict[str, str]:
        """First leg of the OAuth handshake: fetch a temporary token pair.

        Returns:
            The token response as a dict, values exactly as sent by Flickr.
            Usually contains oauth_callback_confirmed, oauth_token and
            oauth_token_secret.
        """
        oauth = self._require_oauth()
        args = self._oauth_params()
        args["oauth_callback"] = oauth.callback
        key = oauth.consumer_secret + "&"
        args["oauth_signature"] = oauth_signature(
            self.config.oauth_endpoint, args, "request_token", key
        )
        logger.debug("GET %srequest_token", self.config.oauth_endpoint)
        body = self._get(f"{self.config.oauth_endpoint}request_token?{encode_query(args)}")
        return parse_token_response(body)

    def authorize_url(self, token: Dict[str, str], perms: str) -> str:
        return f"{self.config.authorize_url}?oauth_token={token['oauth_token']}&perms={perms}"

    def access_token(
        self, oauth_token: str, oauth_verifier: str, oauth_token_secret: str
    ) -> Dict[str, str]:
        """Last leg of the OAuth handshake: trade the verifier for an access token.

        Args:
            oauth_token: Temporary token from request_token
            oauth_verifier: Verifier returned to the callback after authorization
            oauth_token_secret: Temporary token secret from request_token

        Returns:
            Dict with URL-unescaped values, typically fullname, oauth_token,
            oauth_token_secret, user_nsid and username.
        """
        oauth = self._require_oauth()
        args = self._oauth_params()
        args["oauth_verifier"] = oauth_verifier
        args["oauth_token"] = oauth_token
        key = oauth.consumer_secret + "&" + oauth_token_secret
        args["oauth_signature"] = oauth_signature(
            self.config.oauth_endpoint, args, "access_token", key
        )
        logger.debug("GET %saccess_token", self.config.oauth_endpoint)
        body = self._get(f"{self.config.oauth_endpoint}access_token?{encode_query(args)}")
        return parse_token_response(body, unescape=True)

    def execute_authenticated(self) -> str:
        """OAuth-sign args, GET the REST endpoint and check the JSON envelope.

        Returns:
            The raw JSON body text.

        Raises:
            FlickrConfigError: API key, method or OAuth credentials are missing
            FlickrResponseError: The body is not a JSON object
            FlickrAPIError: Flickr answered with ``stat: fail``
        """
        if not self.api_key or not self.method:
            raise FlickrConfigError("Need both API key and method")
        oauth = self._require_oauth()
        args = self.args
        args.pop("oauth_signature", None)
        args.update(self._oauth_params())
        args["method"] = self.method
        args["oauth_token"] = oauth.oauth_token
        args.setdefault("format", "json")
        args.setdefault("nojsoncallback", "1")
        key = oauth.consumer_secret + "&" + oauth.oauth_token_secret
        args["oauth_signature"] = oauth_signature(self.config.rest_endpoint, args, "", key)
        logger.debug("GET %s method=%s (oauth)", self.config.rest_endpoint, self.method)
        body = self._get(f"{self.config.rest_endpoint}?{encode_query(args)}")

        try:
            data = json.loads(body)
        except ValueError as e:
            raise FlickrResponseError(f"Malformed JSON response: {e}", body) from e
        if not isinstance(data, dict):
            raise FlickrResponseError("JSON response is not an object", body)
        if data.get("stat") == "fail":
            try:
                code = int(data.get("code", 0))
            except (TypeError, ValueError) as e:
                raise FlickrResponseError(
                    f"Failure response has a non-numeric code: {data.get('code')!r}", body
                ) from e
            raise FlickrAPIError(code, data.get("message", ""))
        return body

    def _post_file(self, url: str, filename: str, filetype: Optional[str]) -> Response:
        self.args["api_key"] = self.api_key
        post, body = build_post(url, self.args, filename, filetype, self.config.api_host)
        with body, self._http() as client:
            return send_post(client, post, body)

    def upload(self, filename: str, filetype: Optional[str] = None) -> Response:
        """Upload a new photo.

        Example:
            r.upload("thumb.jpg", "image/jpeg")
        """
        return self._post_file(self.config.upload_endpoint, filename, filetype)

    def replace(self, filename: str, filetype: Optional[str] = None) -> Response:
        """Replace an existing photo; args must carry its ``photo_id``."""
        return self._post_file(self.config.replace_endpoint, filename, filetype)
