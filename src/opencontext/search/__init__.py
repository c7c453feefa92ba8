"""Document corpus and keyword search."""

from .corpus import Collection, DocumentCorpus
from .service import (
    AmbiguousDocumentError,
    DocumentLookupError,
    DocumentNotFoundError,
    InvalidLookupError,
    SearchEngine,
)

__all__ = [
    "AmbiguousDocumentError",
    "Collection",
    "DocumentCorpus",
    "DocumentLookupError",
    "DocumentNotFoundError",
    "InvalidLookupError",
    "SearchEngine",
]
