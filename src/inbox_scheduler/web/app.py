"""FastAPI application exposing the deferred-send scheduler."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, status as http_status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from inbox_scheduler.core import AppSettings, load_app_settings
from inbox_scheduler.core.datetime_utils import now_ms
from inbox_scheduler.core.errors import SchedulingError
from inbox_scheduler.core.interfaces import MailProvider
from inbox_scheduler.core.models import CredentialBundle, ScheduleRequest
from inbox_scheduler.scheduling import ScheduledSender, SchedulerRegistry
from inbox_scheduler.storage import SqliteActionRepository
from inbox_scheduler.transport import GmailClient

LOGGER = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Not found or already processed"


class ScheduleBody(BaseModel):
    """Request body for scheduling a prepared draft."""

    id: str | None = Field(default=None, description="Caller supplied action id")
    account_email: str
    thread_id: str
    draft_id: str
    due_at: int = Field(gt=0, description="Due time in epoch milliseconds")
    subject: str = ""
    to: str = ""
    access_token: str = Field(min_length=1)
    refresh_token: str = ""
    client_id: str = ""
    client_secret: str = ""

    def to_request(self, owner_id: str) -> ScheduleRequest:
        """Build a :class:`ScheduleRequest` owned by ``owner_id``."""
        return ScheduleRequest(
            id=self.id,
            user_id=owner_id,
            account_email=self.account_email,
            thread_id=self.thread_id,
            draft_id=self.draft_id,
            due_at=self.due_at,
            subject=self.subject,
            to=self.to,
            credentials=CredentialBundle(
                access_token=self.access_token,
                refresh_token=self.refresh_token,
                client_id=self.client_id,
                client_secret=self.client_secret,
            ),
        )


class CancelBody(BaseModel):
    """Request body for cancelling a scheduled draft."""

    id: str = Field(min_length=1)


def _resolve_env_file() -> Path | None:
    """Return the env file named by ``INBOX_SCHEDULER_ENV_FILE`` or ``./.env``."""
    configured = os.environ.get("INBOX_SCHEDULER_ENV_FILE")
    candidate = Path(configured) if configured else Path(".env")
    return candidate if candidate.is_file() else None


def create_app(
    settings: AppSettings | None = None,
    *,
    provider: MailProvider | None = None,
    clock: Callable[[], int] = now_ms,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings(env_file=_resolve_env_file())
    repository = SqliteActionRepository(app_settings.storage)
    registry = SchedulerRegistry(
        repository,
        provider or GmailClient(app_settings.gmail),
        app_settings.scheduler,
        clock=clock,
    )
    owner_header = app_settings.web.owner_header

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await registry.restore()
        try:
            yield
        finally:
            await registry.close()
            repository.close()
            LOGGER.info("Scheduler registry closed")

    app = FastAPI(title="Inbox Scheduler", lifespan=lifespan)
    app.state.registry = registry

    async def get_sender(request: Request) -> AsyncIterator[ScheduledSender]:
        owner_id = request.headers.get(owner_header)
        if not owner_id:
            raise HTTPException(
                status_code=http_status.HTTP_401_UNAUTHORIZED,
                detail="Missing owner identity",
            )
        sender = registry.acquire(owner_id)
        try:
            yield sender
        finally:
            await registry.release(owner_id)

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(
        _: Request, exc: SchedulingError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": str(exc)},
        )

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/scheduled/schedule")
    async def schedule(
        body: ScheduleBody,
        sender: ScheduledSender = Depends(get_sender),  # noqa: B008
    ) -> dict[str, Any]:
        """Schedule a prepared draft for later sending."""
        action = await sender.schedule(body.to_request(sender.owner_id))
        return {"success": True, "scheduled": action.to_dict()}

    @app.post("/api/scheduled/cancel", response_model=None)
    async def cancel(
        body: CancelBody,
        sender: ScheduledSender = Depends(get_sender),  # noqa: B008
    ) -> dict[str, Any] | JSONResponse:
        """Cancel a pending scheduled draft."""
        if not await sender.cancel(body.id):
            return JSONResponse(
                status_code=http_status.HTTP_404_NOT_FOUND,
                content={"error": NOT_FOUND_MESSAGE},
            )
        return {"success": True}

    @app.get("/api/scheduled/list")
    async def list_scheduled(
        sender: ScheduledSender = Depends(get_sender),  # noqa: B008
    ) -> dict[str, Any]:
        """List every scheduled draft for the owner."""
        actions = await sender.list()
        return {"scheduled": [action.to_dict() for action in actions]}

    return app


__all__ = ["create_app", "ScheduleBody", "CancelBody", "NOT_FOUND_MESSAGE"]
