"""Single wake-time bookkeeping for an owner's action list."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.interfaces import ActionStore, WakeTimer
from ..core.models import ScheduledAction

LOGGER = logging.getLogger(__name__)


def next_wake_time(actions: Iterable[ScheduledAction]) -> int | None:
    """Return the earliest due time among pending actions, if any."""
    pending = [action.due_at for action in actions if action.is_pending]
    return min(pending) if pending else None


class AlarmScheduler:
    """Keep exactly one wake time armed at the earliest pending due time.

    The wake time is written to the store so it survives restarts, then
    handed to the runtime timer. ``recompute`` must run after every change
    to the action list.
    """

    def __init__(self, store: ActionStore, timer: WakeTimer | None = None) -> None:
        self._store = store
        self._timer = timer

    @property
    def armed_at(self) -> int | None:
        """Return the persisted wake time, or ``None`` when disarmed."""
        return self._store.get_alarm()

    def attach_timer(self, timer: WakeTimer) -> None:
        """Use ``timer`` as the runtime primitive from now on."""
        self._timer = timer

    def recompute(self, actions: Iterable[ScheduledAction]) -> int | None:
        """Arm the wake time for ``actions`` and return it."""
        wake_at = next_wake_time(actions)
        if wake_at is None:
            if self._store.get_alarm() is not None:
                LOGGER.debug("Disarming wake timer for owner %s", self._store.owner_id)
            self._store.clear_alarm()
            if self._timer is not None:
                self._timer.disarm()
            return None

        LOGGER.debug("Arming wake timer for owner %s at %s", self._store.owner_id, wake_at)
        self._store.set_alarm(wake_at)
        if self._timer is not None:
            self._timer.arm(wake_at)
        return wake_at

    def restore(self) -> int | None:
        """Re-arm the runtime timer from the persisted wake time."""
        wake_at = self._store.get_alarm()
        if wake_at is not None and self._timer is not None:
            self._timer.arm(wake_at)
        return wake_at


__all__ = ["AlarmScheduler", "next_wake_time"]
