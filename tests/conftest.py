"""
Pytest fixtures and configuration for twtxt registry tests
"""
import copy
from unittest.mock import MagicMock, patch

import pytest
import requests
from werkzeug.security import generate_password_hash

from twtxt_registry.constants import DEFAULT_SETTINGS

ADMIN_PASSWORD = "admin-secret"
FAST_HASH = "pbkdf2:sha256:1000"

SCENARIO_URL = "https://ex.com/twtxt.txt"
MENTIONED_URL = "https://ex2.com/twtxt.txt"
SCENARIO_FEED = f"2023-01-01T00:00:00Z\thello #test @<bar {MENTIONED_URL}>\n"


class FakeFeeds:
    """Stands in for the network behind a requests.Session"""

    def __init__(self):
        self.responses = {}
        self.requests = []
        self.last_response = None

    def serve(self, url, body="", status=200, content_type="text/plain; charset=utf-8"):
        self.responses[url] = (status, content_type, body)

    def get(self, url, headers=None, timeout=None, **kwargs):
        self.requests.append({"url": url, "headers": dict(headers or {}), "timeout": timeout})
        if url not in self.responses:
            raise requests.ConnectionError(f"connection refused: {url}")

        status, content_type, body = self.responses[url]
        response = MagicMock()
        response.status_code = status
        response.headers = {"Content-Type": content_type} if content_type else {}
        response.text = body
        response.encoding = None
        if status >= 400:
            response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
        self.last_response = response
        return response


@pytest.fixture(autouse=True)
def fast_passcode_hash():
    """Passcode hashing with few iterations"""
    with patch("twtxt_registry.services.registry_service.PASSCODE_HASH_METHOD", FAST_HASH):
        yield


@pytest.fixture
def settings():
    """Settings as loaded from a file, with a known admin password"""
    data = copy.deepcopy(DEFAULT_SETTINGS)
    data["server"]["admin_password"] = generate_password_hash(ADMIN_PASSWORD, method=FAST_HASH)
    data["server"]["database_path"] = ":memory:"
    data["server"]["entries_per_page_min"] = 10
    data["server"]["entries_per_page_max"] = 50
    return data


@pytest.fixture
def feeds():
    return FakeFeeds()


@pytest.fixture
def http_session(feeds):
    """MagicMock session answering from the fake feeds"""
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = feeds.get
    return session


@pytest.fixture
def app(settings, http_session):
    """Flask app on an in-memory database, scheduler disabled"""
    from twtxt_registry.app import create_app

    app = create_app(settings, database_path=":memory:", http_session=http_session, start_scheduler=False, testing=True)
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registry(app):
    return app.registry


@pytest.fixture
def admin_headers():
    return {"X-Auth": ADMIN_PASSWORD}


@pytest.fixture
def make_account(app):
    """Register an account directly in the store"""
    from twtxt_registry.repositories import AccountRepository

    counter = {"n": 0}

    def _make(url=None, nickname=None, dt_added=None):
        counter["n"] += 1
        n = counter["n"]
        return AccountRepository.register(
            url or f"https://user{n}.example.com/twtxt.txt",
            nickname or f"user{n}",
            "not-a-real-hash",
            dt_added=dt_added,
        )

    return _make


@pytest.fixture
def make_entries():
    """Build parsed entries for an account"""
    from twtxt_registry.fetcher import FeedEntry

    def _make(account_id, bodies, start_ns=1_672_531_200_000_000_000, step_ns=1_000_000_000):
        return [
            FeedEntry(account_id=account_id, timestamp_ns=start_ns + i * step_ns, body=body)
            for i, body in enumerate(bodies)
        ]

    return _make
