"""Tests for the alarm-fired execution path."""

from __future__ import annotations

import asyncio

import httpx

from inbox_scheduler.core.config import GmailSettings
from inbox_scheduler.core.models import ActionStatus, CredentialBundle, ScheduledAction
from inbox_scheduler.scheduling import ActionExecutor, AlarmScheduler, CredentialLifecycle
from inbox_scheduler.transport import GmailClient


def _action(
    action_id: str,
    due_at: int,
    *,
    access_token: str = "good-token",
    refresh_token: str = "refresh-1",
) -> ScheduledAction:
    return ScheduledAction(
        id=action_id,
        user_id="owner-1",
        account_email="me@example.com",
        thread_id="thread-1",
        draft_id=f"draft-{action_id}",
        due_at=due_at,
        subject="",
        to="",
        created_at=0,
        credentials=CredentialBundle(
            access_token=access_token,
            refresh_token=refresh_token,
            client_id="client-id",
            client_secret="client-secret",
        ),
    )


def _executor(store, provider, timer, clock) -> ActionExecutor:
    alarm = AlarmScheduler(store, timer)
    return ActionExecutor(
        store, provider, CredentialLifecycle(store, provider), alarm, clock=clock
    )


def test_nothing_due_is_a_no_op(store, provider, timer, clock) -> None:
    actions = [_action("a", clock.now + 5_000)]
    store.save(actions)
    store.set_alarm(clock.now + 5_000)
    before = [action.to_dict(include_secrets=True) for action in store.load()]

    report = asyncio.run(_executor(store, provider, timer, clock).run())

    assert report.processed == 0
    assert [action.to_dict(include_secrets=True) for action in store.load()] == before
    assert store.get_alarm() == clock.now + 5_000
    assert provider.sent == []


def test_all_due_actions_are_processed_in_one_batch(store, provider, timer, clock) -> None:
    store.save(
        [
            _action("a", clock.now - 10),
            _action("b", clock.now),
            _action("c", clock.now + 1_000),
        ]
    )

    report = asyncio.run(_executor(store, provider, timer, clock).run())

    assert report.sent == ["a", "b"]
    assert provider.sent == [("good-token", "draft-a"), ("good-token", "draft-b")]
    stored = {action.id: action for action in store.load()}
    assert stored["a"].status is ActionStatus.SENT
    assert stored["a"].sent_at == clock.now
    assert stored["a"].credentials.is_empty
    assert stored["c"].status is ActionStatus.PENDING
    assert report.next_wake_at == clock.now + 1_000
    assert timer.armed == clock.now + 1_000


def test_failure_in_one_action_does_not_block_the_rest(
    store, provider, timer, clock
) -> None:
    provider.send_failures["draft-a"] = "Gmail send failed (500): backend error"
    store.save(
        [
            _action("a", clock.now),
            _action("b", clock.now, access_token="expired", refresh_token=""),
            _action("c", clock.now),
        ]
    )

    report = asyncio.run(_executor(store, provider, timer, clock).run())

    assert report.failed == ["a", "b"]
    assert report.sent == ["c"]
    stored = {action.id: action for action in store.load()}
    assert stored["a"].status is ActionStatus.FAILED
    assert stored["a"].error == "Gmail send failed (500): backend error"
    assert stored["b"].status is ActionStatus.FAILED
    assert "no refresh token" in (stored["b"].error or "")
    assert stored["c"].status is ActionStatus.SENT
    assert all(action.credentials.is_empty for action in stored.values())
    assert timer.armed is None
    assert store.get_alarm() is None


def test_refreshed_token_is_used_for_the_send(store, provider, timer, clock) -> None:
    provider.refresh_results["refresh-1"] = "fresh-token"
    store.save([_action("a", clock.now, access_token="expired")])

    report = asyncio.run(_executor(store, provider, timer, clock).run())

    assert report.sent == ["a"]
    assert provider.sent == [("fresh-token", "draft-a")]
    assert store.load()[0].credentials.is_empty


def test_second_firing_does_not_touch_processed_actions(
    store, provider, timer, clock
) -> None:
    store.save([_action("a", clock.now)])
    executor = _executor(store, provider, timer, clock)

    asyncio.run(executor.run())
    clock.advance(500)
    report = asyncio.run(executor.run())

    assert report.processed == 0
    assert provider.sent == [("good-token", "draft-a")]
    stored = store.load()[0]
    assert stored.status is ActionStatus.SENT
    assert stored.sent_at == clock.now - 500


def test_send_accepted_without_json_body_is_recorded_as_sent(
    store, timer, clock
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/profile"):
            return httpx.Response(200, json={"emailAddress": "me@example.com"})
        return httpx.Response(200, text="OK")

    gmail = GmailClient(
        GmailSettings(api_base="https://gmail.test/v1/users/me"),
        transport=httpx.MockTransport(handler),
    )
    store.save([_action("a", clock.now)])

    report = asyncio.run(_executor(store, gmail, timer, clock).run())

    assert report.sent == ["a"]
    assert report.failed == []
    stored = store.load()[0]
    assert stored.status is ActionStatus.SENT
    assert stored.error is None
