import httpx
import pytest

import flickr_request
from flickr_errors import FlickrAPIError, FlickrConfigError, FlickrResponseError
from flickr_request import OAuth, Request
from flickr_utils import md5_signature, oauth_signature


def make_request(client=None, **args):
    return Request("api", "flickr.photos.getInfo", args, client=client)


@pytest.fixture
def fixed_oauth(monkeypatch):
    monkeypatch.setattr(flickr_request, "get_nonce", lambda: "nonce")
    monkeypatch.setattr(flickr_request, "timestamp", lambda: "1300000000")


def sent_params(request: httpx.Request) -> dict:
    return dict(request.url.params)


def test_sign_adds_api_sig_and_removes_injected_keys():
    request = make_request(photo_id="5336400553")
    request.sign("sekrit")
    assert request.args == {
        "photo_id": "5336400553",
        "api_sig": "d502db1636391b22a81ac5aa815f2a36",
    }


def test_sign_is_deterministic_and_ignores_existing_signature():
    request = make_request(photo_id="5336400553")
    request.sign("sekrit")
    first = request.args["api_sig"]
    request.args["api_sig"] = "stale"
    request.sign("sekrit")
    assert request.args["api_sig"] == first


def test_sign_independent_of_insertion_order():
    one = make_request(photo_id="1", extras="tags", title="x")
    two = make_request(title="x", photo_id="1", extras="tags")
    one.sign("sekrit")
    two.sign("sekrit")
    assert one.args["api_sig"] == two.args["api_sig"]


def test_url_reinjects_key_and_method():
    request = make_request(photo_id="5336400553")
    request.sign("sekrit")
    url = request.url()
    assert url.startswith("https://api.flickr.com/services/rest/?")
    params = dict(httpx.URL(url).params)
    assert params["api_key"] == "api"
    assert params["method"] == "flickr.photos.getInfo"
    assert params["api_sig"] == "d502db1636391b22a81ac5aa815f2a36"


@pytest.mark.parametrize("api_key,method", [("", "flickr.test.echo"), ("api", ""), ("", "")])
def test_execute_requires_key_and_method(recorder, client, api_key, method):
    request = Request(api_key, method, client=client)
    with pytest.raises(FlickrConfigError):
        request.execute()
    assert recorder.requests == []


def test_execute_returns_body_text(recorder, client):
    recorder.handler = lambda r: httpx.Response(200, text='<rsp stat="ok"><photo id="1"/></rsp>')
    request = make_request(client, photo_id="1")
    request.sign("sekrit")
    assert request.execute() == '<rsp stat="ok"><photo id="1"/></rsp>'
    sent = recorder.requests[0]
    assert sent.method == "GET"
    assert sent_params(sent)["photo_id"] == "1"


def test_execute_surfaces_transport_errors(recorder, client):
    def fail(request):
        raise httpx.ConnectError("boom", request=request)

    recorder.handler = fail
    with pytest.raises(httpx.ConnectError):
        make_request(client).execute()


def test_request_token(recorder, client, fixed_oauth):
    recorder.handler = lambda r: httpx.Response(
        200,
        text="oauth_callback_confirmed=true&oauth_token=72157626737672178-022bbd2f4c2f3432&oauth_token_secret=fccb68c4e6103197",
    )
    request = Request("ck", oauth=OAuth("cs", callback="http://localhost/cb"), client=client)
    token = request.request_token()
    assert token["oauth_token"] == "72157626737672178-022bbd2f4c2f3432"
    assert token["oauth_token_secret"] == "fccb68c4e6103197"

    sent = recorder.requests[0]
    assert str(sent.url).startswith("https://www.flickr.com/services/oauth/request_token?")
    params = sent_params(sent)
    signature = params.pop("oauth_signature")
    assert params == {
        "oauth_nonce": "nonce",
        "oauth_timestamp": "1300000000",
        "oauth_consumer_key": "ck",
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_version": "1.0",
        "oauth_callback": "http://localhost/cb",
    }
    assert signature == oauth_signature(
        "https://www.flickr.com/services/oauth/", params, "request_token", "cs&"
    )


def test_request_token_needs_oauth(recorder, client):
    with pytest.raises(FlickrConfigError):
        Request("ck", client=client).request_token()
    assert recorder.requests == []


def test_authorize_url():
    request = Request("ck", oauth=OAuth("cs"))
    url = request.authorize_url({"oauth_token": "tok"}, "write")
    assert url == "https://www.flickr.com/services/oauth/authorize?oauth_token=tok&perms=write"


def test_access_token(recorder, client, fixed_oauth):
    recorder.handler = lambda r: httpx.Response(
        200,
        text="fullname=Jamal%20Fanaian&oauth_token=72157626318069415-087bfc7b5816092c"
        "&oauth_token_secret=a202d1f853ec69de&user_nsid=21207597%40N07&username=jamalfanaian",
    )
    request = Request("ck", oauth=OAuth("cs"), client=client)
    tokens = request.access_token("tmp-token", "verifier", "tmp-secret")
    assert tokens["fullname"] == "Jamal Fanaian"
    assert tokens["user_nsid"] == "21207597@N07"
    assert tokens["oauth_token_secret"] == "a202d1f853ec69de"

    params = sent_params(recorder.requests[0])
    signature = params.pop("oauth_signature")
    assert params["oauth_verifier"] == "verifier"
    assert params["oauth_token"] == "tmp-token"
    assert signature == oauth_signature(
        "https://www.flickr.com/services/oauth/", params, "access_token", "cs&tmp-secret"
    )


def test_execute_authenticated_success(recorder, client, fixed_oauth):
    body = '{"photo": {"id": "1"}, "stat": "ok"}'
    recorder.handler = lambda r: httpx.Response(200, text=body)
    oauth = OAuth("cs", oauth_token="tok", oauth_token_secret="ts")
    request = Request("ck", "flickr.photos.getInfo", {"photo_id": "1"}, oauth=oauth, client=client)
    assert request.execute_authenticated() == body

    sent = recorder.requests[0]
    assert str(sent.url).startswith("https://api.flickr.com/services/rest/?")
    params = sent_params(sent)
    signature = params.pop("oauth_signature")
    assert params["method"] == "flickr.photos.getInfo"
    assert params["oauth_token"] == "tok"
    assert params["format"] == "json"
    assert params["nojsoncallback"] == "1"
    assert signature == oauth_signature("https://api.flickr.com/services/rest/", params, "", "cs&ts")


def test_execute_authenticated_resigns_without_old_signature(recorder, client, fixed_oauth):
    recorder.handler = lambda r: httpx.Response(200, text='{"stat": "ok"}')
    oauth = OAuth("cs", oauth_token="tok", oauth_token_secret="ts")
    request = Request("ck", "flickr.test.login", oauth=oauth, client=client)
    request.execute_authenticated()
    request.execute_authenticated()
    first = sent_params(recorder.requests[0])
    second = sent_params(recorder.requests[1])
    assert first == second


def test_execute_authenticated_failure_envelope(recorder, client):
    recorder.handler = lambda r: httpx.Response(
        200, text='{"stat":"fail","code":1,"message":"Photo not found"}'
    )
    oauth = OAuth("cs", oauth_token="tok", oauth_token_secret="ts")
    request = Request("ck", "flickr.photos.getInfo", {"photo_id": "0"}, oauth=oauth, client=client)
    with pytest.raises(FlickrAPIError) as excinfo:
        request.execute_authenticated()
    assert excinfo.value.code == 1
    assert excinfo.value.message == "Photo not found"
    assert "1" in str(excinfo.value)
    assert "Photo not found" in str(excinfo.value)


@pytest.mark.parametrize("code", ['"abc"', "null", "[1]"])
def test_execute_authenticated_failure_with_bad_code(recorder, client, code):
    body = '{"stat":"fail","code":%s,"message":"Photo not found"}' % code
    recorder.handler = lambda r: httpx.Response(200, text=body)
    oauth = OAuth("cs", oauth_token="tok", oauth_token_secret="ts")
    request = Request("ck", "flickr.photos.getInfo", {"photo_id": "0"}, oauth=oauth, client=client)
    with pytest.raises(FlickrResponseError) as excinfo:
        request.execute_authenticated()
    assert excinfo.value.body == body


def test_execute_authenticated_failure_with_string_code(recorder, client):
    recorder.handler = lambda r: httpx.Response(
        200, text='{"stat":"fail","code":"100","message":"Invalid API Key"}'
    )
    oauth = OAuth("cs", oauth_token="tok", oauth_token_secret="ts")
    request = Request("ck", "flickr.test.login", oauth=oauth, client=client)
    with pytest.raises(FlickrAPIError) as excinfo:
        request.execute_authenticated()
    assert excinfo.value.code == 100


def test_execute_authenticated_malformed_json(recorder, client):
    recorder.handler = lambda r: httpx.Response(200, text="<html>oops</html>")
    oauth = OAuth("cs", oauth_token="tok", oauth_token_secret="ts")
    request = Request("ck", "flickr.test.login", oauth=oauth, client=client)
    with pytest.raises(FlickrResponseError):
        request.execute_authenticated()


def test_execute_authenticated_requires_oauth(recorder, client):
    with pytest.raises(FlickrConfigError):
        Request("ck", "flickr.test.login", client=client).execute_authenticated()
    assert recorder.requests == []


def test_md5_and_oauth_schemes_treat_empty_values_differently():
    params = {"a": "1", "b": ""}
    assert md5_signature("s", params) == md5_signature("s", {"a": "1"})
    assert oauth_signature("https://x/", params, "", "k&") != oauth_signature("https://x/", {"a": "1"}, "", "k&")
