from typing import Callable, List

import httpx
import pytest

from flickr_config import FlickrConfig


class Recorder:
    """Mock transport that records every request and answers with a handler."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.bodies: List[bytes] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, text='<rsp stat="ok"></rsp>'
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(request.read())
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def client(recorder):
    with httpx.Client(transport=httpx.MockTransport(recorder)) as c:
        yield c


@pytest.fixture
def config():
    return FlickrConfig()
