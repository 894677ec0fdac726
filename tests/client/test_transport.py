import pytest
import requests

from checkpoint_client.config import ClientConfig
from checkpoint_client.exceptions import TransportError
from checkpoint_client.main import VisitBoard
from checkpoint_client.session import ScanEvent, ScanEventKind
from checkpoint_client.transport import ProbeReply, ProbeTransport


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.logins = 0
        self.requests = []

    def post(self, url, **kwargs):
        self.logins += 1
        return FakeResponse(200, {"access_token": f"token-{self.logins}"})

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self):
        pass


@pytest.fixture
def cfg():
    return ClientConfig(
        server_base_url="http://checkpoint.test/",
        section="gym",
        login_username="gymdesk",
        login_password="s3cret",
    )


def test_reply_reads_the_recent_visit_key():
    reply = ProbeReply.from_payload(
        {
            "ok": True,
            "matched": True,
            "confidence": 81,
            "student": {"id": 4, "name": "Kiran"},
            "inserted_visit_id": 12,
            "recentVisit": {"id": 12},
            "recorded": True,
        }
    )

    assert reply.subject_id == 4
    assert reply.confidence == 81.0
    assert reply.recent_visit == {"id": 12}


def test_submit_probe_posts_the_image(cfg):
    session = FakeSession([FakeResponse(200, {"ok": True, "matched": False, "confidence": -1})])
    transport = ProbeTransport(cfg, session=session)

    reply = transport.submit_probe(b"jpeg")

    method, url, kwargs = session.requests[0]
    assert method == "POST"
    assert url == "http://checkpoint.test/api/v1/staff/gym/scan"
    assert kwargs["files"]["image"][1] == b"jpeg"
    assert kwargs["headers"]["Authorization"] == "Bearer token-1"
    assert reply.matched is False
    assert reply.confidence == -1.0


def test_expired_token_is_refreshed_once(cfg):
    session = FakeSession([FakeResponse(401, {"ok": False}), FakeResponse(200, {"ok": True, "matched": False})])
    transport = ProbeTransport(cfg, session=session)

    reply = transport.submit_probe(b"jpeg")

    assert reply.ok is True
    assert session.logins == 2
    assert session.requests[1][2]["headers"]["Authorization"] == "Bearer token-2"


def test_rejection_is_returned_not_raised(cfg):
    session = FakeSession([FakeResponse(403, {"ok": False, "message": "Forbidden: not gym staff"})])

    reply = ProbeTransport(cfg, session=session).submit_probe(b"jpeg")

    assert reply.ok is False
    assert reply.message == "Forbidden: not gym staff"


def test_unreadable_reply_raises(cfg):
    session = FakeSession([FakeResponse(502, None)])

    with pytest.raises(TransportError):
        ProbeTransport(cfg, session=session).submit_probe(b"jpeg")


def test_network_failure_raises(cfg):
    session = FakeSession([requests.ConnectionError("refused")])

    with pytest.raises(TransportError):
        ProbeTransport(cfg, session=session).submit_probe(b"jpeg")


def test_board_puts_new_matches_on_top():
    board = VisitBoard(max_rows=2)
    board.load(
        [{"id": 2, "student_name": "B", "category_attribute": True}, {"id": 1, "student_name": "A"}],
        {"total_visits": 2, "with_attribute": 1, "without_attribute": 1},
    )
    reply = ProbeReply(
        ok=True,
        matched=True,
        student={"id": 9, "name": "C"},
        inserted_visit_id=3,
        recent_visit={"id": 3, "student_name": "C", "category_attribute": False},
    )

    board.handle(ScanEvent(ScanEventKind.MATCH, "Matched: C", reply))

    assert [row["id"] for row in board.rows] == [3, 2]
    assert board.totals == {"total": 3, "with_attribute": 1, "without_attribute": 2}
    assert board.render().startswith("Status: Matched: C")
