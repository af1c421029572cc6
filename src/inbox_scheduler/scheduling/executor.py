"""Alarm-fired processing of due scheduled actions."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.datetime_utils import now_ms
from ..core.interfaces import ActionStore, MailProvider
from ..core.models import ActionStatus, ExecutionReport, ScheduledAction
from .alarm import AlarmScheduler
from .credentials import CredentialLifecycle

LOGGER = logging.getLogger(__name__)


class ActionExecutor:
    """Send every due pending action, isolating failures per action."""

    def __init__(
        self,
        store: ActionStore,
        provider: MailProvider,
        credentials: CredentialLifecycle,
        alarm: AlarmScheduler,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._provider = provider
        self._credentials = credentials
        self._alarm = alarm
        self._clock = clock

    async def run(self, now: int | None = None) -> ExecutionReport:
        """Process actions due at ``now`` and re-arm the wake time."""
        if now is None:
            now = self._clock()
        actions = self._store.load()
        due = [action for action in actions if action.is_due(now)]
        report = ExecutionReport()

        if not due:
            LOGGER.debug("Alarm fired for owner %s with nothing due", self._store.owner_id)
            report.next_wake_at = self._alarm.recompute(actions)
            return report

        LOGGER.info(
            "Processing %d due action(s) for owner %s", len(due), self._store.owner_id
        )
        for action in due:
            await self._execute(action, report)

        self._store.save(actions)
        report.next_wake_at = self._alarm.recompute(actions)
        LOGGER.info(
            "Batch finished for owner %s: %d sent, %d failed, next wake %s",
            self._store.owner_id,
            len(report.sent),
            len(report.failed),
            report.next_wake_at,
        )
        return report

    async def _execute(
        self, action: ScheduledAction, report: ExecutionReport
    ) -> None:
        try:
            token = await self._credentials.get_valid_token(action)
            await self._provider.send_draft(token, action.draft_id)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Scheduled action %s failed: %s", action.id, exc)
            action.finish(ActionStatus.FAILED, error=str(exc) or type(exc).__name__)
            report.failed.append(action.id)
            return

        action.finish(ActionStatus.SENT, at=self._clock())
        report.sent.append(action.id)
        LOGGER.info("Scheduled action %s sent", action.id)


__all__ = ["ActionExecutor"]
