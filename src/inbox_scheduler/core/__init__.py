"""Core utilities for configuration, logging, and domain models."""

from .config import AppSettings, GmailSettings, StorageSettings, load_app_settings
from .logging import configure_logging
from .models import ActionStatus, CredentialBundle, ScheduledAction, ScheduleRequest

__all__ = [
    "ActionStatus",
    "AppSettings",
    "CredentialBundle",
    "GmailSettings",
    "ScheduleRequest",
    "ScheduledAction",
    "StorageSettings",
    "configure_logging",
    "load_app_settings",
]
