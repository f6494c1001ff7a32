from __future__ import annotations

import dataclasses
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse

import pytest


def pytest_configure():
    # Ensure project root is on sys.path for absolute imports like 'services.registry_client'
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))
    # Set test environment knobs
    os.environ.setdefault("RUN_ENV", "test")


FAKE_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock that only moves when slept on or advanced by the test."""

    def __init__(self, start: float):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, reason=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.reason = reason

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Stands in for requests.Session.

    ``routes`` maps a URL path to a FakeResponse, a list of responses consumed
    in order (the last one repeats), a callable taking the params, or an
    exception instance to raise. Unknown paths answer 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, params=None, **kwargs):
        path = urlparse(url).path
        self.calls.append((path, dict(params or {})))
        route = self.routes.get(path)
        if route is None:
            return FakeResponse(404, {"errors": [{"error": "company-profile-not-found"}]}, reason="Not Found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, list):
            return route.pop(0) if len(route) > 1 else route[0]
        if callable(route):
            return route(dict(params or {}))
        return route


def _company_payload(
    number="12345678",
    name="ACME LIMITED",
    status="active",
    created="2010-03-15",
    sic=("43210",),
    **extra,
):
    payload = {
        "company_number": number,
        "company_name": name,
        "company_status": status,
        "date_of_creation": created,
        "type": "ltd",
        "jurisdiction": "england-wales",
        "registered_office_address": {"address_line_1": "1 High Street", "locality": "Leeds"},
        "sic_codes": list(sic),
    }
    payload.update(extra)
    return payload


@pytest.fixture
def fake_clock():
    return FakeClock(FAKE_NOW.timestamp())


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def company_payload():
    return _company_payload


@pytest.fixture
def registry_settings():
    from config.settings import get_settings

    get_settings.cache_clear()
    return dataclasses.replace(
        get_settings(),
        registry_api_key="test-key",
        registry_base_url="https://registry.test",
        registry_trace=False,
    )


@pytest.fixture
def make_client(fake_clock, registry_settings):
    from services.registry_client import RegistryClient

    def _make(session, **overrides):
        settings = dataclasses.replace(registry_settings, **overrides)
        return RegistryClient(settings, session=session, clock=fake_clock, sleep=fake_clock.sleep)

    return _make
