"""Access token validation and refresh for scheduled actions."""

from __future__ import annotations

import logging

from ..core.errors import (
    AuthorizationError,
    ExternalServiceError,
    TokenValidationError,
)
from ..core.interfaces import ActionStore, MailProvider
from ..core.models import ScheduledAction

LOGGER = logging.getLogger(__name__)


class CredentialLifecycle:
    """Produce a usable access token for an action, refreshing at most once."""

    def __init__(self, store: ActionStore, provider: MailProvider) -> None:
        self._store = store
        self._provider = provider

    async def get_valid_token(self, action: ScheduledAction) -> str:
        """Return a validated access token for ``action``.

        A rejected token is exchanged once through the refresh token and the
        new token is written back to the stored record. Every other outcome
        raises :class:`TokenValidationError`.
        """
        credentials = action.credentials
        try:
            await self._provider.validate_token(credentials.access_token)
        except AuthorizationError as exc:
            if not credentials.refresh_token:
                raise TokenValidationError(
                    f"{exc}; no refresh token available"
                ) from exc
            return await self._refresh(action)
        except ExternalServiceError as exc:
            raise TokenValidationError(str(exc)) from exc
        return credentials.access_token

    async def _refresh(self, action: ScheduledAction) -> str:
        credentials = action.credentials
        LOGGER.info("Refreshing access token for action %s", action.id)
        try:
            token = await self._provider.refresh_access_token(
                credentials.refresh_token,
                credentials.client_id,
                credentials.client_secret,
            )
        except ExternalServiceError as exc:
            LOGGER.warning("Token refresh failed for action %s: %s", action.id, exc)
            raise TokenValidationError(str(exc)) from exc

        action.credentials = credentials.with_access_token(token)
        self._persist_token(action.id, token)
        return token

    def _persist_token(self, action_id: str, token: str) -> None:
        actions = self._store.load()
        for stored in actions:
            if stored.id == action_id and stored.is_pending:
                stored.credentials = stored.credentials.with_access_token(token)
                self._store.save(actions)
                return
        LOGGER.debug("Action %s no longer pending; refreshed token not stored", action_id)


__all__ = ["CredentialLifecycle"]
