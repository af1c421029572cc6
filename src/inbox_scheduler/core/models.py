"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from .errors import InvalidTransitionError


class ActionStatus(StrEnum):
    """Lifecycle states of a scheduled action."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` for states that can never be left."""
        return self is not ActionStatus.PENDING


@dataclass(frozen=True, slots=True)
class CredentialBundle:
    """OAuth material needed to send on the owner's behalf.

    Values are excluded from ``repr`` so a bundle never leaks into logs.
    """

    access_token: str = field(default="", repr=False)
    refresh_token: str = field(default="", repr=False)
    client_id: str = field(default="", repr=False)
    client_secret: str = field(default="", repr=False)

    @classmethod
    def empty(cls) -> CredentialBundle:
        """Return a bundle with every secret cleared."""
        return cls()

    @property
    def is_empty(self) -> bool:
        """Return ``True`` when no secret field holds a value."""
        return not (
            self.access_token
            or self.refresh_token
            or self.client_id
            or self.client_secret
        )

    def with_access_token(self, access_token: str) -> CredentialBundle:
        """Return a copy carrying a refreshed access token."""
        return replace(self, access_token=access_token)

    def to_dict(self) -> dict[str, str]:
        """Return the bundle as a plain mapping for persistence."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CredentialBundle:
        """Rebuild a bundle from :meth:`to_dict` output."""
        if not data:
            return cls.empty()
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token") or "",
            client_id=data.get("client_id") or "",
            client_secret=data.get("client_secret") or "",
        )


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class ScheduledAction:
    """A prepared draft that should be sent at ``due_at``.

    Times are epoch milliseconds. ``subject`` and ``to`` are display-only
    copies of the draft headers and are never used for sending.
    """

    id: str
    user_id: str
    account_email: str
    thread_id: str
    draft_id: str
    due_at: int
    subject: str
    to: str
    created_at: int
    credentials: CredentialBundle
    status: ActionStatus = ActionStatus.PENDING
    error: str | None = None
    sent_at: int | None = None

    @property
    def is_pending(self) -> bool:
        """Return ``True`` while the action may still be sent or cancelled."""
        return self.status is ActionStatus.PENDING

    def is_due(self, now: int) -> bool:
        """Return ``True`` when the action is pending and its time has come."""
        return self.is_pending and self.due_at <= now

    def finish(
        self,
        status: ActionStatus,
        *,
        at: int | None = None,
        error: str | None = None,
    ) -> None:
        """Move the action into a terminal ``status`` and drop its secrets."""
        if not self.is_pending:
            raise InvalidTransitionError(
                f"Action {self.id} is already {self.status.value}"
            )
        if not status.is_terminal:
            raise InvalidTransitionError(f"{status.value} is not a terminal status")
        self.status = status
        if status is ActionStatus.SENT:
            self.sent_at = at
        if status is ActionStatus.FAILED:
            self.error = error or "Unknown error"
        self.credentials = CredentialBundle.empty()

    def redacted(self) -> ScheduledAction:
        """Return a copy that is safe to hand to callers."""
        return replace(self, credentials=CredentialBundle.empty())

    def to_dict(self, *, include_secrets: bool = False) -> dict[str, Any]:
        """Serialise the action to JSON-compatible primitives."""
        credentials = (
            self.credentials if include_secrets else CredentialBundle.empty()
        )
        payload: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "account_email": self.account_email,
            "thread_id": self.thread_id,
            "draft_id": self.draft_id,
            "due_at": self.due_at,
            "subject": self.subject,
            "to": self.to,
            "status": self.status.value,
            "created_at": self.created_at,
            "sent_at": self.sent_at,
            **credentials.to_dict(),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduledAction:
        """Rebuild an action from :meth:`to_dict` output."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            account_email=data["account_email"],
            thread_id=data["thread_id"],
            draft_id=data["draft_id"],
            due_at=int(data["due_at"]),
            subject=data.get("subject") or "",
            to=data.get("to") or "",
            created_at=int(data["created_at"]),
            credentials=CredentialBundle.from_dict(data),
            status=ActionStatus(data.get("status", ActionStatus.PENDING.value)),
            error=data.get("error"),
            sent_at=data.get("sent_at"),
        )


@dataclass(slots=True)
class ScheduleRequest:
    """Everything a caller supplies when scheduling a draft.

    ``id`` may be left empty to have the scheduler generate one.
    """

    user_id: str
    account_email: str
    thread_id: str
    draft_id: str
    due_at: int
    credentials: CredentialBundle
    subject: str = ""
    to: str = ""
    id: str | None = None


@dataclass(slots=True)
class ExecutionReport:
    """Outcome of a single alarm-fired batch."""

    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    next_wake_at: int | None = None

    @property
    def processed(self) -> int:
        """Number of due actions handled in the batch."""
        return len(self.sent) + len(self.failed)


__all__ = [
    "ActionStatus",
    "CredentialBundle",
    "ExecutionReport",
    "ScheduleRequest",
    "ScheduledAction",
]
