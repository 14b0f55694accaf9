"""Shared fakes for registry and session access."""

import json
from typing import Dict, List, Union

import pytest

from package_index.config import IndexSettings
from package_index.http_client import RegistryResponse


Body = Union[str, dict, list]


def _as_text(body: Body) -> str:
    return body if isinstance(body, str) else json.dumps(body)


class FakeClient:
    """Stands in for RegistryClient, answering from a uri -> (status, body) map."""

    def __init__(self, responses: Dict[str, object], settings: IndexSettings = None) -> None:
        self.responses = responses
        self.settings = settings or IndexSettings(service_version="test")
        self.calls: List[str] = []

    def query(self, uri, headers=None):
        self.calls.append(uri)
        if uri not in self.responses:
            return RegistryResponse(uri=uri, status_code=404, text="not found")
        answer = self.responses[uri]
        if isinstance(answer, tuple):
            status, body = answer
        else:
            status, body = 200, answer
        return RegistryResponse(uri=uri, status_code=status, text=_as_text(body))

    def close(self):
        pass


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Minimal requests.Session replacement replaying canned responses in order."""

    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.headers: Dict[str, str] = {}
        self.calls: List[str] = []

    def get(self, uri, headers=None, timeout=None):
        self.calls.append(uri)
        answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def close(self):
        pass


@pytest.fixture
def make_client():
    def _make(responses, settings=None):
        return FakeClient(responses, settings)

    return _make


@pytest.fixture
def make_session():
    def _make(*responses):
        return FakeSession(responses)

    return _make


@pytest.fixture
def fake_response():
    return FakeResponse
