import asyncio
import os
import tempfile
from datetime import date, timedelta
from pathlib import Path

import httpx
import pytest

# Keep the credential slot out of the working tree before settings are imported.
TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="multitracker-tests-"))
os.environ.setdefault("CREDENTIALS_PATH", str(TEST_DATA_DIR / "credentials.db"))
os.environ.setdefault("API_TOKEN", "")

from multitracker.progress.validation import validate  # noqa: E402
from multitracker.store.client import ProgressClient  # noqa: E402
from multitracker.store.credentials import StaticTokenProvider  # noqa: E402
from multitracker.store.errors import AggregateUnavailableError, ValidationError  # noqa: E402
from multitracker.store.models import ProgressEntry, StepStatus, User  # noqa: E402

TODAY = date(2025, 9, 15)
BASE_URL = "http://store.test"


def make_entry(user_id: int, day: date, **fields) -> ProgressEntry:
    return ProgressEntry(user_id=user_id, date=day, **fields)


def scenario_week(user_id: int = 1) -> list[ProgressEntry]:
    """Sep 09 - Sep 15: the dashboard's sample week."""
    water = [4, 2, 4, 3, 3, 2, 4]
    sleep = [7, 6, 6, 7, 7, 6, 6]
    steps = [StepStatus.COMPLETED] * 5 + [StepStatus.PARTIAL] * 2
    start = TODAY - timedelta(days=6)
    return [
        make_entry(
            user_id,
            start + timedelta(days=i),
            id=100 * user_id + i,
            water_intake_liters=water[i],
            total_sleep_hours=sleep[i],
            walk_10k_steps=steps[i],
        )
        for i in range(7)
    ]


class FakeStore:
    """Routes (method, path) to canned JSON answers or handlers, recording requests."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, body=None, status: int = 200, handler=None):
        self.routes[(method, path)] = handler or (status, body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(route):
            return route(request)
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class FakeProgressClient:
    """In-memory progress client whose fetches can be held back per user."""

    def __init__(self, users, entries=None, aggregates=None):
        self.users = list(users)
        self.entries = entries or {}
        self.aggregates = aggregates or {}
        self.gates: dict[int, asyncio.Event] = {}
        self.users_error = None
        self.entries_error = None
        self.create_gate = None
        self.created = []
        self.calls = []

    def gate(self, user_id: int) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[user_id] = event
        return event

    async def _wait(self, user_id: int):
        gate = self.gates.get(user_id)
        if gate is not None:
            await gate.wait()

    async def fetch_users(self):
        self.calls.append(("users", None))
        if self.users_error:
            raise self.users_error
        return list(self.users)

    async def fetch_entries(self, user_id, date_range=None):
        self.calls.append(("entries", user_id))
        await self._wait(user_id)
        if self.entries_error:
            raise self.entries_error
        rows = self.entries.get(user_id, [])
        return [e for e in rows if date_range is None or date_range.contains(e.date)]

    async def fetch_weekly_aggregate(self, user_id, window=None):
        self.calls.append(("aggregate", user_id))
        await self._wait(user_id)
        result = self.aggregates.get(user_id)
        if result is None:
            raise AggregateUnavailableError()
        if isinstance(result, Exception):
            raise result
        return result

    async def create_entry(self, user_id, payload):
        if self.create_gate is not None:
            await self.create_gate.wait()
        result = validate(payload)
        if result.errors:
            raise ValidationError(result.errors)
        entry = result.entry.to_entry(user_id, entry_id=len(self.created) + 1)
        self.created.append(entry)
        self.entries.setdefault(user_id, []).append(entry)
        return entry


@pytest.fixture
def users():
    return [
        User(id=1, name="Ada Lovelace", image_url="https://img.test/ada.png"),
        User(id=2, name="Alan Turing", image_url=""),
    ]


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def client(store):
    return ProgressClient(
        BASE_URL,
        StaticTokenProvider("secret-token"),
        transport=store.transport,
        clock=lambda: TODAY,
    )
