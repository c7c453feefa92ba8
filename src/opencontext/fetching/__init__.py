"""Cache-aware acquisition of records from upstream sources."""

from .errors import (
    FetchError,
    NoVersionsFoundError,
    NotFoundError,
    TransientSourceError,
    UnknownSourceError,
)
from .service import FetchOrchestrator, SingleFlight, SourceAdapter
from .versions import VersionResolver

__all__ = [
    "FetchError",
    "FetchOrchestrator",
    "NoVersionsFoundError",
    "NotFoundError",
    "SingleFlight",
    "SourceAdapter",
    "TransientSourceError",
    "UnknownSourceError",
    "VersionResolver",
]
