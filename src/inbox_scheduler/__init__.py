"""Deferred sending of prepared Gmail drafts."""

__version__ = "0.1.0"
