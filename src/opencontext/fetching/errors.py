"""Failure kinds raised while acquiring records from upstream sources."""

from __future__ import annotations


class FetchError(RuntimeError):
    """Base error for upstream retrieval failures."""


class NotFoundError(FetchError):
    """The subject or version does not exist at the source."""


class TransientSourceError(FetchError):
    """Network failure, timeout, or an unexpected response status."""


class NoVersionsFoundError(NotFoundError):
    """No probed path of an artifact reported a version."""


class UnknownSourceError(FetchError):
    """No adapter is registered under the requested name."""


__all__ = [
    "FetchError",
    "NoVersionsFoundError",
    "NotFoundError",
    "TransientSourceError",
    "UnknownSourceError",
]
