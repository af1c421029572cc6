"""Per-owner actor that schedules, cancels and sends deferred drafts."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable, Iterable
from functools import partial
from typing import Any

from ..core.datetime_utils import now_ms
from ..core.errors import CleanupError, SchedulingError
from ..core.interfaces import ActionStore, MailProvider, WakeTimer
from ..core.models import (
    ActionStatus,
    ExecutionReport,
    ScheduledAction,
    ScheduleRequest,
)
from .alarm import AlarmScheduler
from .credentials import CredentialLifecycle
from .executor import ActionExecutor

LOGGER = logging.getLogger(__name__)

Command = Callable[[], Awaitable[Any]]


def generate_action_id(now: int, existing: Iterable[str] = ()) -> str:
    """Return a time-based id with a random suffix not present in ``existing``."""
    taken = set(existing)
    while True:
        candidate = f"sched_{now}_{secrets.token_hex(4)}"
        if candidate not in taken:
            return candidate


class AsyncioWakeTimer(WakeTimer):
    """Wake timer backed by ``loop.call_later``."""

    def __init__(
        self, on_fire: Callable[[], None], *, clock: Callable[[], int] = now_ms
    ) -> None:
        self._on_fire = on_fire
        self._clock = clock
        self._handle: asyncio.TimerHandle | None = None
        self.wake_at: int | None = None

    def arm(self, wake_at: int) -> None:
        self.disarm()
        delay = max(0.0, (wake_at - self._clock()) / 1000)
        self._handle = asyncio.get_running_loop().call_later(delay, self._fire)
        self.wake_at = wake_at

    def disarm(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self.wake_at = None

    def _fire(self) -> None:
        self._handle = None
        self.wake_at = None
        self._on_fire()


class ScheduledSender:
    """Serialised owner of one user's scheduled actions.

    All commands pass through a single mailbox drained by one worker task,
    so ``schedule``, ``cancel``, ``list`` and the alarm never interleave and
    the whole-list read-modify-write cycles need no locks. Records returned
    to callers never carry credentials.
    """

    def __init__(
        self,
        store: ActionStore,
        provider: MailProvider,
        *,
        clock: Callable[[], int] = now_ms,
        require_future_due: bool = True,
        timer: WakeTimer | None = None,
    ) -> None:
        self.owner_id = store.owner_id
        self._store = store
        self._provider = provider
        self._clock = clock
        self._require_future_due = require_future_due
        self._timer = timer or AsyncioWakeTimer(self._on_timer, clock=clock)
        self._alarm = AlarmScheduler(store, self._timer)
        self._credentials = CredentialLifecycle(store, provider)
        self._executor = ActionExecutor(
            store, provider, self._credentials, self._alarm, clock=clock
        )
        self._mailbox: asyncio.Queue[tuple[Command, asyncio.Future[Any]]] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._alarm_tasks: set[asyncio.Task[Any]] = set()

    # Lifecycle ---------------------------------------------------------------
    @property
    def running(self) -> bool:
        """Return ``True`` while the mailbox worker is alive."""
        return self._worker is not None and not self._worker.done()

    @property
    def armed_at(self) -> int | None:
        """Return the persisted wake time, or ``None`` when disarmed."""
        return self._alarm.armed_at

    @property
    def idle(self) -> bool:
        """Return ``True`` when nothing is queued, running or armed."""
        queued = self._mailbox is not None and not self._mailbox.empty()
        return not queued and not self._alarm_tasks and self.armed_at is None

    async def start(self) -> None:
        """Start the mailbox worker and re-arm any persisted wake time."""
        if self.running:
            return
        self._mailbox = asyncio.Queue()
        self._worker = asyncio.create_task(
            self._drain_mailbox(), name=f"scheduled-sender:{self.owner_id}"
        )
        wake_at = self._alarm.restore()
        LOGGER.debug("Started sender for owner %s (wake at %s)", self.owner_id, wake_at)

    async def stop(self) -> None:
        """Stop the worker; the persisted wake time is kept for the next start."""
        self._timer.disarm()
        tasks = [task for task in (self._worker, *self._alarm_tasks) if task]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._worker = None
        self._alarm_tasks.clear()
        if self._mailbox is not None:
            while not self._mailbox.empty():
                _, future = self._mailbox.get_nowait()
                future.cancel()
        self._mailbox = None

    # Owner-facing operations -------------------------------------------------
    async def schedule(self, request: ScheduleRequest) -> ScheduledAction:
        """Queue ``request`` for sending at its due time."""
        return await self._submit(partial(self._schedule, request))

    async def cancel(self, action_id: str) -> bool:
        """Cancel a pending action; ``False`` when unknown or already processed."""
        return await self._submit(partial(self._cancel, action_id))

    async def list(self) -> list[ScheduledAction]:
        """Return every action for the owner in store order."""
        return await self._submit(self._list)

    async def alarm(self) -> ExecutionReport:
        """Send whatever is due now. Invoked by the wake timer."""
        return await self._submit(self._executor.run)

    # Mailbox -----------------------------------------------------------------
    async def _submit(self, command: Command) -> Any:
        await self.start()
        assert self._mailbox is not None
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        await self._mailbox.put((command, future))
        return await future

    async def _drain_mailbox(self) -> None:
        assert self._mailbox is not None
        mailbox = self._mailbox
        while True:
            command, future = await mailbox.get()
            try:
                if future.cancelled():
                    continue
                result = await command()
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as exc:  # pylint: disable=broad-except
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                mailbox.task_done()

    def _on_timer(self) -> None:
        task = asyncio.get_running_loop().create_task(self.alarm())
        self._alarm_tasks.add(task)
        task.add_done_callback(self._alarm_finished)

    def _alarm_finished(self, task: asyncio.Task[Any]) -> None:
        self._alarm_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "Alarm for owner %s failed: %s", self.owner_id, exc, exc_info=exc
            )

    # Command handlers --------------------------------------------------------
    async def _schedule(self, request: ScheduleRequest) -> ScheduledAction:
        now = self._clock()
        if self._require_future_due and request.due_at <= now:
            raise SchedulingError(
                f"due_at must be in the future (got {request.due_at}, now {now})"
            )

        actions = self._store.load()
        existing_ids = [action.id for action in actions]
        if request.id and request.id in existing_ids:
            raise SchedulingError(f"Action {request.id} already exists")

        action = ScheduledAction(
            id=request.id or generate_action_id(now, existing_ids),
            user_id=request.user_id,
            account_email=request.account_email,
            thread_id=request.thread_id,
            draft_id=request.draft_id,
            due_at=request.due_at,
            subject=request.subject,
            to=request.to,
            created_at=now,
            credentials=request.credentials,
        )
        actions.append(action)
        self._store.save(actions)
        self._alarm.recompute(actions)
        LOGGER.info(
            "Scheduled draft %s for owner %s at %s as %s",
            action.draft_id,
            self.owner_id,
            action.due_at,
            action.id,
        )
        return action.redacted()

    async def _cancel(self, action_id: str) -> bool:
        actions = self._store.load()
        action = next(
            (item for item in actions if item.id == action_id and item.is_pending),
            None,
        )
        if action is None:
            LOGGER.info("No pending action %s for owner %s", action_id, self.owner_id)
            return False

        try:
            await self._discard_draft(action)
        except CleanupError as exc:
            LOGGER.warning("Ignoring draft cleanup failure: %s", exc)

        action.finish(ActionStatus.CANCELLED)
        self._store.save(actions)
        self._alarm.recompute(actions)
        LOGGER.info("Cancelled action %s for owner %s", action_id, self.owner_id)
        return True

    async def _list(self) -> list[ScheduledAction]:
        return [action.redacted() for action in self._store.load()]

    async def _discard_draft(self, action: ScheduledAction) -> None:
        try:
            token = await self._credentials.get_valid_token(action)
            await self._provider.delete_draft(token, action.draft_id)
        except Exception as exc:  # pylint: disable=broad-except
            raise CleanupError(
                f"Could not discard draft {action.draft_id}: {exc}"
            ) from exc


__all__ = ["AsyncioWakeTimer", "ScheduledSender", "generate_action_id"]
