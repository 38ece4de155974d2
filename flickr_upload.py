import logging
import mimetypes
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterator, Mapping, Optional, Tuple

import httpx
from defusedxml import DefusedXmlException
from defusedxml import ElementTree as DefusedET

from flickr_errors import FlickrAPIError, FlickrResponseError

# Multipart upload/replace support and the XML response envelope

logger = logging.getLogger(__name__)

BOUNDARY = "----###---###--flickr-go-rules"
CRLF = "\r\n"
CHUNK_SIZE = 64 * 1024


@dataclass
class ResponseError:
    code: str
    message: str


@dataclass
class Response:
    """XML envelope returned by the upload, replace and REST endpoints.

    Attributes:
        status: Value of the ``stat`` attribute, "ok" or "fail"
        error: Code and message from the ``<err>`` element, if any
        payload: Raw inner XML of the root element
    """

    status: str
    error: Optional[ResponseError]
    payload: str

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def raise_for_error(self) -> None:
        if self.error is not None:
            code = int(self.error.code) if self.error.code.isdigit() else self.error.code
            raise FlickrAPIError(code, self.error.message)
        if not self.ok:
            raise FlickrAPIError(0, f"Unexpected status {self.status!r}")


def _inner_xml(text: str, tag: str) -> str:
    """Return the raw text between the root element's start and end tags."""
    local = tag.rpartition("}")[2]
    start = re.search(
        r"<(?:[\w.-]+:)?" + re.escape(local)
        + r"(?:\s+[^\s=>/]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*\s*(/?)>",
        text,
    )
    if start is None or start.group(1):
        return ""
    return text[start.end():text.rfind("</")]


def parse_response(text: str) -> Response:
    """Parse a ``<rsp stat="...">`` document into a Response.

    Raises:
        FlickrResponseError: The body is not well-formed XML
    """
    try:
        root = DefusedET.fromstring(text)
    except (ET.ParseError, DefusedXmlException) as e:
        raise FlickrResponseError(f"Malformed XML response: {e}", text) from e

    error = None
    err = root.find("err")
    if err is not None:
        error = ResponseError(code=err.get("code", ""), message=err.get("msg", ""))
    payload = _inner_xml(text, root.tag)
    return Response(status=root.get("stat", ""), error=error, payload=payload)


def guess_filetype(filename: str) -> str:
    filetype, _ = mimetypes.guess_type(filename)
    return filetype or "application/octet-stream"


class MultipartBody:
    """Single-pass multipart/form-data stream of form fields plus one file.

    The file is opened and measured on construction, so open/stat errors are
    raised before any HTTP request exists. Iterating yields the header, the
    file in chunks, then the footer; the file is never buffered whole. The
    file handle is closed when iteration ends, fails or ``close()`` is called.
    """

    def __init__(
        self,
        args: Mapping[str, str],
        filename: str,
        filetype: Optional[str] = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.filename = filename
        self.filetype = filetype or guess_filetype(filename)
        self.chunk_size = chunk_size
        self._file = open(filename, "rb")
        try:
            self.file_size = os.fstat(self._file.fileno()).st_size
        except OSError:
            self._file.close()
            raise
        self.header = self._build_header(args)
        self.footer = f"{CRLF}--{BOUNDARY}--{CRLF}".encode("utf-8")

    def _build_header(self, args: Mapping[str, str]) -> bytes:
        parts = []
        for key, value in args.items():
            parts.append(f"--{BOUNDARY}{CRLF}")
            parts.append(f'Content-Disposition: form-data; name="{key}"{CRLF}{CRLF}')
            parts.append(f"{value}{CRLF}")
        parts.append(f"--{BOUNDARY}{CRLF}")
        parts.append(
            f'Content-Disposition: form-data; name="photo"; filename="photo.jpg"{CRLF}'
        )
        parts.append(f"Content-Type: {self.filetype}{CRLF}{CRLF}")
        return "".join(parts).encode("utf-8")

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={BOUNDARY}"

    @property
    def content_length(self) -> int:
        return len(self.header) + self.file_size + len(self.footer)

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield self.header
            remaining = self.file_size
            while remaining > 0:
                chunk = self._file.read(min(self.chunk_size, remaining))
                if not chunk:
                    raise OSError(
                        f"{self.filename}: file ended {remaining} bytes short of its size"
                    )
                remaining -= len(chunk)
                yield chunk
            yield self.footer
        finally:
            self.close()

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "MultipartBody":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def build_post(
    url: str, args: Mapping[str, str], filename: str, filetype: Optional[str], host: str
) -> Tuple[httpx.Request, MultipartBody]:
    """Build a streaming multipart POST for the upload or replace endpoint.

    Raises:
        OSError: The file cannot be opened or measured
    """
    body = MultipartBody(args, filename, filetype)
    headers = {
        "Host": host,
        "Content-Type": body.content_type,
        "Content-Length": str(body.content_length),
    }
    return httpx.Request("POST", url, headers=headers, content=body), body


def send_post(client: httpx.Client, post: httpx.Request, body: MultipartBody) -> Response:
    """Send a multipart POST, read the whole response and parse its XML envelope."""
    logger.debug("POST %s (%d bytes)", post.url, body.content_length)
    try:
        resp = client.send(post)
    finally:
        body.close()
    return parse_response(resp.text)
