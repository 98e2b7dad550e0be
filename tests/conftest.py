"""
Pytest configuration and fixtures for deal-archiver tests.

The archive endpoint is simulated with ``httpx.MockTransport``; the status
store is the in-memory backend and notifications are recorded instead of
mailed.
"""

from __future__ import annotations

from typing import Callable, Optional

import httpx
import pytest

from deal_archiver.client.archive import ArchiveClient
from deal_archiver.notifications.email import Notification
from deal_archiver.processor.machine import StatusMachine
from deal_archiver.processor.runner import RecordProcessor
from deal_archiver.processor.states import StatusValues
from deal_archiver.scheduler.orchestrator import ArchiveScheduler
from deal_archiver.store.memory import InMemoryStatusStore

ARCHIVE_URL = "http://archive.test/archive"

PENDING = "ToArchive"
ARCHIVING = "Archiving"
ARCHIVED = "Archived"
ERRORED = "ArchiveError"


class RecordingNotifier:
    """Notifier double that keeps every notification."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> bool:
        self.sent.append(notification)
        return self.accept

    def for_record(self, record_id: str) -> list[Notification]:
        return [n for n in self.sent if f"Deal ID: {record_id}\n" in n.body]


class ArchiveService:
    """Scripted archive endpoint keyed by record id."""

    def __init__(self) -> None:
        self.responses: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []
        self.on_request: Optional[Callable[[str], None]] = None

    def succeed(self, record_id: str, file: str) -> None:
        self.responses[record_id] = lambda request: httpx.Response(
            200, json={"success": True, "result": {"result": "ok", "file": file}}
        )

    def fail(self, record_id: str, message: str, status_code: int = 200) -> None:
        self.responses[record_id] = lambda request: httpx.Response(
            status_code, json={"success": False, "result": {"result": message, "file": ""}}
        )

    def unreachable(self, record_id: str) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        self.responses[record_id] = handler

    def garbage(self, record_id: str, body: bytes = b"<html>Bad Gateway</html>") -> None:
        self.responses[record_id] = lambda request: httpx.Response(502, content=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        record_id = request.url.params.get("deal", "")
        if self.on_request is not None:
            self.on_request(record_id)
        handler = self.responses.get(record_id)
        if handler is None:
            return httpx.Response(404, json={"success": False, "result": {"result": "unknown deal"}})
        return handler(request)


@pytest.fixture
def statuses() -> StatusValues:
    return StatusValues(
        pending=PENDING,
        archiving=ARCHIVING,
        archived=ARCHIVED,
        errored=ERRORED,
    )


@pytest.fixture
def store() -> InMemoryStatusStore:
    return InMemoryStatusStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service() -> ArchiveService:
    return ArchiveService()


@pytest.fixture
def client(service: ArchiveService) -> ArchiveClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(service))
    return ArchiveClient(ARCHIVE_URL, http_client=http_client)


@pytest.fixture
def machine(store: InMemoryStatusStore, statuses: StatusValues) -> StatusMachine:
    return StatusMachine(store, statuses)


@pytest.fixture
def processor(
    machine: StatusMachine,
    client: ArchiveClient,
    notifier: RecordingNotifier,
) -> RecordProcessor:
    return RecordProcessor(machine, client, notifier)


@pytest.fixture
def scheduler(machine: StatusMachine, processor: RecordProcessor) -> ArchiveScheduler:
    return ArchiveScheduler(machine, processor, interval=0.05, max_concurrency=8)
