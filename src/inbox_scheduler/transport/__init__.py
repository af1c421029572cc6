"""Transport adapters for external mail providers."""

from .gmail_client import GmailClient

__all__ = ["GmailClient"]
