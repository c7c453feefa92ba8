"""Shared domain models used across the open-context engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence


@dataclass(frozen=True)
class CacheKey:
    """Hierarchical address of a cached record."""

    namespace: str
    subcollection: str
    identifier: str
    version: str = ""


@dataclass(frozen=True)
class ContentRecord:
    """Structured header fields plus an opaque markdown body."""

    identifier: str
    version: str = ""
    attributes: Mapping[str, str] = field(default_factory=dict)
    body: str = ""


@dataclass(frozen=True)
class VersionResolution:
    """Outcome of resolving the latest release of an artifact."""

    version: str
    identifier: str


@dataclass(frozen=True)
class DocumentEntry:
    """One searchable topic loaded from the local corpus."""

    id: str
    title: str
    description: str
    keywords: Sequence[str]
    body: str
    collection: str


@dataclass(frozen=True)
class SearchResult:
    """Ranked search hit; carries no body."""

    id: str
    title: str
    description: str
    collection: str
    score: int


@dataclass(frozen=True)
class TopicSummary:
    id: str
    title: str
    description: str
    keywords: Sequence[str]
    collection: str


@dataclass(frozen=True)
class CollectionSummary:
    name: str
    display_name: str
    description: str
    topics: Sequence[TopicSummary] = ()
