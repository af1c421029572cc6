"""Lookup table of per-owner senders sharing one repository and provider."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.config import SchedulerSettings
from ..core.datetime_utils import now_ms
from ..core.interfaces import MailProvider
from ..storage import SqliteActionRepository
from .sender import ScheduledSender

LOGGER = logging.getLogger(__name__)


class SchedulerRegistry:
    """Create one :class:`ScheduledSender` per owner on first use."""

    def __init__(
        self,
        repository: SqliteActionRepository,
        provider: MailProvider,
        settings: SchedulerSettings | None = None,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._repository = repository
        self._provider = provider
        self._settings = settings or SchedulerSettings()
        self._clock = clock
        self._senders: dict[str, ScheduledSender] = {}
        self._leases: dict[str, int] = {}

    def __contains__(self, owner_id: object) -> bool:
        return owner_id in self._senders

    def get(self, owner_id: str) -> ScheduledSender:
        """Return the sender for ``owner_id``, creating it if needed."""
        sender = self._senders.get(owner_id)
        if sender is None:
            sender = ScheduledSender(
                self._repository.for_owner(owner_id),
                self._provider,
                clock=self._clock,
                require_future_due=self._settings.require_future_due,
            )
            self._senders[owner_id] = sender
        return sender

    def acquire(self, owner_id: str) -> ScheduledSender:
        """Return the sender for ``owner_id`` and hold it until :meth:`release`."""
        self._leases[owner_id] = self._leases.get(owner_id, 0) + 1
        return self.get(owner_id)

    async def release(self, owner_id: str) -> None:
        """Drop one hold; an unheld sender with no armed wake time is stopped."""
        remaining = self._leases.get(owner_id, 0) - 1
        if remaining > 0:
            self._leases[owner_id] = remaining
            return
        self._leases.pop(owner_id, None)
        sender = self._senders.get(owner_id)
        if sender is None or not sender.idle:
            return
        del self._senders[owner_id]
        await sender.stop()
        LOGGER.debug("Evicted idle sender for owner %s", owner_id)

    async def restore(self) -> int:
        """Start a sender for every owner with a persisted wake time."""
        alarms = self._repository.list_alarms()
        for owner_id in alarms:
            await self.get(owner_id).start()
        if alarms:
            LOGGER.info("Restored wake timers for %d owner(s)", len(alarms))
        return len(alarms)

    async def close(self) -> None:
        """Stop every running sender."""
        for sender in self._senders.values():
            await sender.stop()
        self._senders.clear()
        self._leases.clear()


__all__ = ["SchedulerRegistry"]
