"""Web application entry point for Inbox Scheduler.

Serve with ``uvicorn --factory inbox_scheduler.web:create_app``.
"""

from .app import create_app

__all__ = ["create_app"]
