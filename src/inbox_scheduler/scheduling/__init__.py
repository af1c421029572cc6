"""Deferred-send scheduling components."""

from .alarm import AlarmScheduler, next_wake_time
from .credentials import CredentialLifecycle
from .executor import ActionExecutor
from .registry import SchedulerRegistry
from .sender import AsyncioWakeTimer, ScheduledSender, generate_action_id

__all__ = [
    "ActionExecutor",
    "AlarmScheduler",
    "AsyncioWakeTimer",
    "CredentialLifecycle",
    "ScheduledSender",
    "SchedulerRegistry",
    "generate_action_id",
    "next_wake_time",
]
