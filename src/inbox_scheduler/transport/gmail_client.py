"""Gmail REST client covering the draft calls used by deferred sending."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from inbox_scheduler.core.config import GmailSettings
from inbox_scheduler.core.errors import AuthorizationError, ExternalServiceError
from inbox_scheduler.core.interfaces import MailProvider

logger = logging.getLogger(__name__)


class GmailClient(MailProvider):
    """Client for the Gmail drafts API using caller-supplied OAuth tokens.

    The client holds no credentials of its own: every call receives the
    access token belonging to the scheduled action being processed.
    """

    def __init__(
        self,
        settings: GmailSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client with settings and an optional transport."""
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self._settings.timeout_seconds,
        )

    def _url(self, path: str) -> str:
        return f"{self._settings.api_base.rstrip('/')}/{path.lstrip('/')}"

    async def validate_token(self, access_token: str) -> None:
        """Check ``access_token`` against the profile endpoint."""
        try:
            async with self._client() as client:
                response = await client.get(
                    self._url("profile"),
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            logger.error("Token validation request failed: %s", exc)
            raise ExternalServiceError(f"Gmail API request failed: {exc}") from exc

        if response.status_code == 401:
            logger.warning("Access token rejected by Gmail (status 401)")
            raise AuthorizationError(
                "Gmail API returned 401", status_code=response.status_code
            )
        if not response.is_success:
            logger.error("Token validation failed: %s", response.status_code)
            logger.debug("Response: %s", response.text)
            raise ExternalServiceError(
                f"Gmail API returned {response.status_code}",
                status_code=response.status_code,
            )

    async def refresh_access_token(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> str:
        """Refresh the access token using the refresh token."""
        logger.info("Attempting to refresh access token...")
        try:
            async with self._client() as client:
                response = await client.post(
                    self._settings.token_url,
                    data={
                        "client_id": client_id,
                        "client_secret": client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.HTTPError as exc:
            logger.error("Token refresh request failed: %s", exc)
            raise ExternalServiceError(f"Token refresh failed: {exc}") from exc

        if response.status_code != 200:
            logger.error("Token refresh failed: %s", response.status_code)
            logger.error("Response: %s", response.text)
            raise ExternalServiceError(
                f"Token refresh failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            tokens: Any = response.json()
        except ValueError as exc:
            logger.error("Token refresh response was not JSON: %s", response.text)
            raise ExternalServiceError("Token refresh response was not JSON") from exc
        if not isinstance(tokens, dict):
            raise ExternalServiceError("Token refresh response was not a JSON object")
        access_token = tokens.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ExternalServiceError("Token refresh response missing access_token")
        logger.info(
            "Successfully refreshed access token (starts with: %s...)",
            access_token[:6],
        )
        return access_token

    async def send_draft(self, access_token: str, draft_id: str) -> None:
        """Send a previously created draft."""
        try:
            async with self._client() as client:
                response = await client.post(
                    self._url("drafts/send"),
                    headers={"Authorization": f"Bearer {access_token}"},
                    json={"id": draft_id},
                )
        except httpx.HTTPError as exc:
            logger.error("Send request for draft %s failed: %s", draft_id, exc)
            raise ExternalServiceError(f"Gmail send failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Failed to send draft %s: %s - %s",
                draft_id,
                response.status_code,
                response.text,
            )
            raise ExternalServiceError(
                f"Gmail send failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        # The draft is gone once Gmail answers 2xx; the body is informational.
        logger.info(
            "Sent draft %s (message ID: %s)", draft_id, _message_id(response)
        )

    async def delete_draft(self, access_token: str, draft_id: str) -> None:
        """Delete a draft that will no longer be sent."""
        try:
            async with self._client() as client:
                response = await client.delete(
                    self._url(f"drafts/{draft_id}"),
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            logger.error("Delete request for draft %s failed: %s", draft_id, exc)
            raise ExternalServiceError(f"Gmail draft delete failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Failed to delete draft %s: %s - %s",
                draft_id,
                response.status_code,
                response.text,
            )
            raise ExternalServiceError(
                f"Gmail draft delete failed ({response.status_code})",
                status_code=response.status_code,
            )
        logger.debug("Deleted draft %s", draft_id)


def _message_id(response: httpx.Response) -> str | None:
    """Return the sent message id when the body carries one."""
    try:
        message = response.json()
    except ValueError:
        return None
    if isinstance(message, dict):
        return message.get("id")
    return None


__all__ = ["GmailClient"]
