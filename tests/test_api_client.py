import asyncio
import json

import pytest
import requests

from livequiz.api_client import ApiClient, backend_message
from livequiz.common import SessionContext
from livequiz.errors import (
    ConnectivityError,
    NotFoundError,
    QuizClientError,
    SessionStateError,
    Unauthorized,
    ValidationError,
)


def make_response(status: int, body=None, raw: bytes = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    if raw is not None:
        response._content = raw
    else:
        response._content = b"" if body is None else json.dumps(body).encode()
    return response


class StubSession:
    """Minimal requests.Session replacement that replays canned responses."""

    def __init__(self, *responses):
        self.headers = {}
        self.responses = list(responses)
        self.sent = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.sent.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


@pytest.fixture
def context():
    return SessionContext(token="tok-1")


def client_for(context, *responses):
    stub = StubSession(*responses)
    return ApiClient("http://quiz.test/", context, timeout=3, session=stub), stub


class TestRequests:
    def test_bearer_token_and_url(self, context):
        api, stub = client_for(context, make_response(200, {"ok": True}))
        body = asyncio.run(api.get("/api/quiz"))
        assert body == {"ok": True}
        sent = stub.sent[0]
        assert sent["method"] == "GET"
        assert sent["url"] == "http://quiz.test/api/quiz"
        assert sent["headers"]["Authorization"] == "Bearer tok-1"
        assert sent["timeout"] == 3

    def test_unauthenticated_call_has_no_token(self, context):
        api, stub = client_for(context, make_response(200, {}))
        asyncio.run(api.post("/api/auth/login", auth=False, json={"a": 1}))
        assert "Authorization" not in stub.sent[0]["headers"]
        assert stub.sent[0]["json"] == {"a": 1}

    def test_token_read_at_call_time(self, context):
        api, stub = client_for(context, make_response(200, {}))
        context.clear_credentials()
        asyncio.run(api.get("/api/quiz"))
        assert "Authorization" not in stub.sent[0]["headers"]

    def test_empty_body_decodes_to_empty_dict(self, context):
        api, _ = client_for(context, make_response(204))
        assert asyncio.run(api.post("/x")) == {}

    def test_non_json_body_decodes_to_empty_dict(self, context):
        api, _ = client_for(context, make_response(200, raw=b"<html>ok</html>"))
        assert asyncio.run(api.get("/x")) == {}

    def test_close_closes_session(self, context):
        api, stub = client_for(context)
        api.close()
        assert stub.closed


class TestErrorMapping:
    @pytest.mark.parametrize("status, error_cls", [
        (400, ValidationError),
        (401, Unauthorized),
        (403, Unauthorized),
        (404, NotFoundError),
        (409, SessionStateError),
        (422, ValidationError),
        (500, QuizClientError),
    ])
    def test_status_maps_to_error(self, context, status, error_cls):
        api, _ = client_for(context, make_response(status, {}))
        with pytest.raises(error_cls) as info:
            asyncio.run(api.get("/x"))
        assert info.value.status == status

    def test_backend_message_is_kept(self, context):
        api, _ = client_for(context, make_response(409, {"success": False, "message": "Quiz already open"}))
        with pytest.raises(SessionStateError) as info:
            asyncio.run(api.post("/open"))
        assert info.value.message == "Quiz already open"
        assert info.value.detail == {"success": False, "message": "Quiz already open"}

    def test_connection_error_is_connectivity(self, context):
        api, _ = client_for(context, requests.ConnectionError("refused"))
        with pytest.raises(ConnectivityError):
            asyncio.run(api.get("/x"))

    def test_timeout_is_connectivity(self, context):
        api, _ = client_for(context, requests.Timeout("slow"))
        with pytest.raises(ConnectivityError):
            asyncio.run(api.get("/x"))


class TestBackendMessage:
    def test_prefers_message_then_error(self):
        assert backend_message({"message": " nope "}) == "nope"
        assert backend_message({"error": "bad"}) == "bad"
        assert backend_message({"detail": "why"}) == "why"

    def test_missing_or_blank(self):
        assert backend_message({"message": "   "}) is None
        assert backend_message(["message"]) is None
        assert backend_message(None) is None
