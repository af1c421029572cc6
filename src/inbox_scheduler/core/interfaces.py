"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from typing import Protocol

from .models import ScheduledAction


class ActionStore(Protocol):
    """Whole-list persistence of one owner's scheduled actions.

    Every mutation is load, modify, save. The store does no locking of its
    own; callers serialise access per owner.
    """

    owner_id: str

    def load(self) -> list[ScheduledAction]:
        """Return every stored action in insertion order."""
        raise NotImplementedError

    def save(self, actions: list[ScheduledAction]) -> None:
        """Replace the stored list with ``actions``."""
        raise NotImplementedError

    def get_alarm(self) -> int | None:
        """Return the persisted wake time in epoch milliseconds."""
        raise NotImplementedError

    def set_alarm(self, wake_at: int) -> None:
        """Persist ``wake_at`` as the owner's single wake time."""
        raise NotImplementedError

    def clear_alarm(self) -> None:
        """Forget the owner's wake time."""
        raise NotImplementedError


class MailProvider(Protocol):
    """The subset of the mail provider API the scheduler depends on."""

    async def validate_token(self, access_token: str) -> None:
        """Issue a cheap authenticated call.

        Raises :class:`AuthorizationError` when the token is rejected and
        :class:`ExternalServiceError` for any other failure.
        """
        raise NotImplementedError

    async def refresh_access_token(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> str:
        """Exchange ``refresh_token`` for a fresh access token."""
        raise NotImplementedError

    async def send_draft(self, access_token: str, draft_id: str) -> None:
        """Send the prepared draft ``draft_id``."""
        raise NotImplementedError

    async def delete_draft(self, access_token: str, draft_id: str) -> None:
        """Discard the prepared draft ``draft_id``."""
        raise NotImplementedError


class WakeTimer(Protocol):
    """Runtime timer primitive; at most one wake time is armed at once."""

    def arm(self, wake_at: int) -> None:
        """Fire once at ``wake_at``, replacing any previously armed time."""
        raise NotImplementedError

    def disarm(self) -> None:
        """Cancel the armed wake time if there is one."""
        raise NotImplementedError


__all__ = ["ActionStore", "MailProvider", "WakeTimer"]
