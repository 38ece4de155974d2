import base64
import hashlib
import hmac
import secrets
import time
from typing import Dict, Mapping
from urllib.parse import quote_plus, unquote_plus

from flickr_errors import FlickrResponseError

# Nonce, signature and query-string helpers shared by every request type

NONCE_BYTES = 32


def get_nonce() -> str:
    """Return a random URL-safe nonce built from NONCE_BYTES random bytes."""
    return base64.urlsafe_b64encode(secrets.token_bytes(NONCE_BYTES)).decode("ascii")


def timestamp() -> str:
    return str(int(time.time()))


def query_escape(value: str) -> str:
    """Escape a value for use in a query string (space becomes ``+``)."""
    return quote_plus(str(value), safe="")


def encode_query(params: Mapping[str, str]) -> str:
    """Serialize params as ``key=value`` pairs in iteration order."""
    return "&".join(f"{key}={query_escape(value)}" for key, value in params.items())


def md5_signature(secret: str, params: Mapping[str, str]) -> str:
    """Compute the legacy ``api_sig`` for params.

    The signature is the hex MD5 of the secret followed by every key and
    value, keys sorted by byte value. Pairs with an empty value are skipped.
    """
    payload = secret
    for key in sorted(params):
        value = params[key]
        if value != "":
            payload += f"{key}{value}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def oauth_base_string(endpoint: str, params: Mapping[str, str], method: str = "") -> str:
    """Build the OAuth 1.0a signature base string for a GET request.

    Args:
        endpoint: Endpoint URL; any ``?`` is removed before encoding
        params: Every oauth_* and API parameter that will be sent
        method: Path suffix appended to the endpoint (e.g. ``request_token``)

    Returns:
        ``GET&<escaped endpoint>&<escaped sorted params>``
    """
    joined = "&".join(f"{key}={query_escape(params[key])}" for key in sorted(params))
    encoded_endpoint = query_escape(endpoint.replace("?", "") + method)
    return f"GET&{encoded_endpoint}&{query_escape(joined)}"


def hmac_sha1(message: str, key: str) -> str:
    digest = hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def oauth_signature(endpoint: str, params: Mapping[str, str], method: str, key: str) -> str:
    return hmac_sha1(oauth_base_string(endpoint, params, method), key)


def parse_token_response(body: str, unescape: bool = False) -> Dict[str, str]:
    """Parse an ``&``-delimited ``key=value`` body returned by the OAuth endpoints.

    Raises:
        FlickrResponseError: A pair has no ``=`` in it
    """
    tokens = {}
    for pair in body.strip().split("&"):
        key, sep, value = pair.partition("=")
        if not sep:
            raise FlickrResponseError(f"Malformed token response pair: {pair!r}", body)
        tokens[key] = unquote_plus(value) if unescape else value
    return tokens
