import pytest
import requests

from checkpoint_server.exceptions import OracleConfigurationError
from checkpoint_server.services.oracle import ComparisonOracle, parse_oracle_response


class FakeResponse:
    def __init__(self, status_code=200, body=None, raise_on_json=False):
        self.status_code = status_code
        self._body = body
        self._raise_on_json = raise_on_json

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._raise_on_json:
            raise ValueError("not json")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.posts = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


def _oracle(session):
    return ComparisonOracle(
        endpoint="https://oracle.test/compare",
        api_key="key",
        api_secret="secret",
        timeout_seconds=20,
        session=session,
    )


@pytest.mark.parametrize(
    "body",
    [
        {"error_message": "CONCURRENCY_LIMIT_EXCEEDED"},
        {"request_id": "abc"},
        {"confidence": True},
        {"confidence": "high"},
        {"confidence": float("nan")},
        ["not", "an", "object"],
    ],
)
def test_unusable_bodies_become_errors(body):
    result = parse_oracle_response(body)

    assert result.usable is False
    assert result.error


def test_numeric_confidence_is_accepted():
    assert parse_oracle_response({"confidence": 87.4}).confidence == 87.4
    assert parse_oracle_response({"confidence": "73"}).confidence == 73.0


def test_missing_credentials_raise_configuration_error():
    with pytest.raises(OracleConfigurationError):
        ComparisonOracle(endpoint="https://oracle.test/compare", api_key="", api_secret="secret")


def test_compare_posts_both_images_with_credentials():
    session = FakeSession(FakeResponse(body={"confidence": 92.1}))

    result = _oracle(session).compare(b"probe", b"target")

    assert result.confidence == 92.1
    url, kwargs = session.posts[0]
    assert url == "https://oracle.test/compare"
    assert kwargs["data"] == {"api_key": "key", "api_secret": "secret"}
    assert kwargs["files"]["image_file1"][1] == b"probe"
    assert kwargs["files"]["image_file2"][1] == b"target"
    assert kwargs["timeout"] == 20


def test_rate_limit_body_on_4xx_is_an_error():
    session = FakeSession(FakeResponse(403, {"error_message": "CONCURRENCY_LIMIT_EXCEEDED"}))

    result = _oracle(session).compare(b"probe", b"target")

    assert result.error == "CONCURRENCY_LIMIT_EXCEEDED"


def test_non_json_reply_is_an_error():
    session = FakeSession(FakeResponse(502, raise_on_json=True))

    result = _oracle(session).compare(b"probe", b"target")

    assert result.usable is False
    assert "502" in result.error


def test_confidence_on_error_status_is_not_trusted():
    session = FakeSession(FakeResponse(500, {"confidence": 99.0}))

    assert _oracle(session).compare(b"probe", b"target").usable is False


def test_network_failure_is_an_error():
    session = FakeSession(exc=requests.Timeout("read timed out"))

    result = _oracle(session).compare(b"probe", b"target")

    assert result.usable is False
    assert "read timed out" in result.error
