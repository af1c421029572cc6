"""Tests for the scheduled action model and its state machine."""

from __future__ import annotations

import pytest

from inbox_scheduler.core.errors import InvalidTransitionError
from inbox_scheduler.core.models import (
    ActionStatus,
    CredentialBundle,
    ScheduledAction,
)


def _sample_action(**overrides) -> ScheduledAction:
    values = {
        "id": "sched_1_abcd",
        "user_id": "owner-1",
        "account_email": "me@example.com",
        "thread_id": "thread-1",
        "draft_id": "draft-1",
        "due_at": 2_000,
        "subject": "Hello",
        "to": "you@example.com",
        "created_at": 1_000,
        "credentials": CredentialBundle(
            access_token="access",
            refresh_token="refresh",
            client_id="client",
            client_secret="secret",
        ),
    }
    values.update(overrides)
    return ScheduledAction(**values)


@pytest.mark.parametrize(
    "status", [ActionStatus.SENT, ActionStatus.FAILED, ActionStatus.CANCELLED]
)
def test_finish_clears_credentials(status: ActionStatus) -> None:
    action = _sample_action()

    action.finish(status, at=5_000, error="boom")

    assert action.status is status
    assert action.credentials.is_empty


def test_finish_records_sent_time_and_error_only_where_relevant() -> None:
    sent = _sample_action()
    sent.finish(ActionStatus.SENT, at=5_000)
    assert sent.sent_at == 5_000
    assert sent.error is None

    failed = _sample_action()
    failed.finish(ActionStatus.FAILED, error="Gmail send failed (500): boom")
    assert failed.sent_at is None
    assert failed.error == "Gmail send failed (500): boom"

    cancelled = _sample_action()
    cancelled.finish(ActionStatus.CANCELLED)
    assert cancelled.sent_at is None
    assert cancelled.error is None


def test_terminal_state_cannot_be_left() -> None:
    action = _sample_action()
    action.finish(ActionStatus.CANCELLED)

    with pytest.raises(InvalidTransitionError):
        action.finish(ActionStatus.SENT, at=9_000)
    assert action.status is ActionStatus.CANCELLED


def test_pending_is_not_a_valid_target() -> None:
    action = _sample_action()

    with pytest.raises(InvalidTransitionError):
        action.finish(ActionStatus.PENDING)
    assert action.is_pending
    assert not action.credentials.is_empty


def test_redacted_copy_leaves_stored_credentials_intact() -> None:
    action = _sample_action()

    redacted = action.redacted()

    assert redacted.credentials.is_empty
    assert redacted.id == action.id
    assert action.credentials.access_token == "access"


def test_is_due_only_for_pending_actions() -> None:
    action = _sample_action(due_at=2_000)
    assert not action.is_due(1_999)
    assert action.is_due(2_000)

    action.finish(ActionStatus.SENT, at=2_000)
    assert not action.is_due(3_000)


def test_to_dict_hides_secrets_unless_requested() -> None:
    action = _sample_action()

    public = action.to_dict()
    private = action.to_dict(include_secrets=True)

    assert public["access_token"] == ""
    assert public["client_secret"] == ""
    assert private["access_token"] == "access"
    assert "error" not in public
    assert ScheduledAction.from_dict(private) == action


def test_credential_repr_does_not_expose_values() -> None:
    bundle = CredentialBundle(access_token="top-secret-token")

    assert "top-secret-token" not in repr(bundle)
    assert "top-secret-token" not in repr(_sample_action(credentials=bundle))
