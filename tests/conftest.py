"""Shared fixtures and test doubles for scheduler tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from inbox_scheduler.core.config import StorageSettings
from inbox_scheduler.core.errors import AuthorizationError, ExternalServiceError
from inbox_scheduler.core.models import CredentialBundle, ScheduleRequest
from inbox_scheduler.scheduling import ScheduledSender
from inbox_scheduler.storage import OwnerActionStore, SqliteActionRepository

START_MS = 1_760_000_000_000
OWNER = "owner-1"


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


class RecordingTimer:
    """Wake timer that only records what it was asked to do."""

    def __init__(self) -> None:
        self.armed: int | None = None
        self.history: list[int | None] = []

    def arm(self, wake_at: int) -> None:
        self.armed = wake_at
        self.history.append(wake_at)

    def disarm(self) -> None:
        self.armed = None
        self.history.append(None)


class FakeMailProvider:
    """In-memory stand-in for the Gmail API."""

    def __init__(self) -> None:
        self.valid_tokens: set[str] = {"good-token"}
        self.refresh_results: dict[str, str] = {}
        self.send_failures: dict[str, str] = {}
        self.validation_error: ExternalServiceError | None = None
        self.delete_error: Exception | None = None
        self.validate_calls: list[str] = []
        self.refresh_calls: list[str] = []
        self.sent: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []

    async def validate_token(self, access_token: str) -> None:
        self.validate_calls.append(access_token)
        if self.validation_error is not None:
            raise self.validation_error
        if access_token not in self.valid_tokens:
            raise AuthorizationError("Gmail API returned 401", status_code=401)

    async def refresh_access_token(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> str:
        del client_id, client_secret
        self.refresh_calls.append(refresh_token)
        token = self.refresh_results.get(refresh_token)
        if token is None:
            raise ExternalServiceError(
                "Token refresh failed (400): invalid_grant", status_code=400
            )
        self.valid_tokens.add(token)
        return token

    async def send_draft(self, access_token: str, draft_id: str) -> None:
        if draft_id in self.send_failures:
            raise ExternalServiceError(self.send_failures[draft_id], status_code=500)
        self.sent.append((access_token, draft_id))

    async def delete_draft(self, access_token: str, draft_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((access_token, draft_id))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer() -> RecordingTimer:
    return RecordingTimer()


@pytest.fixture
def provider() -> FakeMailProvider:
    return FakeMailProvider()


@pytest.fixture
def repository(tmp_path: Path) -> Iterator[SqliteActionRepository]:
    repo = SqliteActionRepository(StorageSettings(db_path=tmp_path / "scheduler.db"))
    yield repo
    repo.close()


@pytest.fixture
def store(repository: SqliteActionRepository) -> OwnerActionStore:
    return repository.for_owner(OWNER)


@pytest.fixture
def sender(
    store: OwnerActionStore,
    provider: FakeMailProvider,
    clock: FakeClock,
    timer: RecordingTimer,
) -> ScheduledSender:
    return ScheduledSender(store, provider, clock=clock, timer=timer)


@pytest.fixture
def make_request() -> Callable[..., ScheduleRequest]:
    """Return a factory for schedule requests with sensible defaults."""

    def factory(
        due_at: int,
        *,
        draft_id: str = "draft-1",
        action_id: str | None = None,
        access_token: str = "good-token",
        refresh_token: str = "refresh-1",
    ) -> ScheduleRequest:
        return ScheduleRequest(
            id=action_id,
            user_id=OWNER,
            account_email="me@example.com",
            thread_id="thread-1",
            draft_id=draft_id,
            due_at=due_at,
            subject="Quarterly numbers",
            to="boss@example.com",
            credentials=CredentialBundle(
                access_token=access_token,
                refresh_token=refresh_token,
                client_id="client-id",
                client_secret="client-secret",
            ),
        )

    return factory
