"""Keyword search and direct lookup over the loaded document corpus."""

from __future__ import annotations

from opencontext.metrics.observability import ServiceMetrics, TimedSection, get_logger
from opencontext.models import CollectionSummary, DocumentEntry, SearchResult, TopicSummary
from opencontext.search.corpus import DocumentCorpus

TITLE_WEIGHT = 10
KEYWORD_WEIGHT = 5
DESCRIPTION_WEIGHT = 3
BODY_WEIGHT = 1


class DocumentLookupError(LookupError):
    """Base class for document lookup failures."""


class InvalidLookupError(DocumentLookupError, ValueError):
    """Neither an id nor a title was supplied."""


class DocumentNotFoundError(DocumentLookupError):
    """No document matched the lookup."""


class AmbiguousDocumentError(DocumentLookupError):
    """The lookup matched documents in more than one collection."""

    def __init__(self, key: str, collections: list[str]) -> None:
        super().__init__(
            f"{key!r} exists in several collections ({', '.join(collections)}); specify a language"
        )
        self.collections = collections


def score_entry(query: str, entry: DocumentEntry) -> int:
    """Score one entry against an already lower-cased query."""

    score = 0
    if query in entry.title.lower():
        score += TITLE_WEIGHT
    score += KEYWORD_WEIGHT * sum(1 for keyword in entry.keywords if query in keyword.lower())
    if query in entry.description.lower():
        score += DESCRIPTION_WEIGHT
    if query in entry.body.lower():
        score += BODY_WEIGHT
    return score


class SearchEngine:
    """Ranks corpus entries by substring matches on title, keywords, description and body."""

    def __init__(self, corpus: DocumentCorpus) -> None:
        self.corpus = corpus
        self._logger = get_logger("search")

    def search(self, query: str, collection: str | None = None) -> list[SearchResult]:
        needle = query.strip().lower()
        if not needle:
            return []
        results: list[SearchResult] = []

        def _observe(duration: float) -> None:
            ServiceMetrics.observe_search(duration, len(results))

        with TimedSection(_observe):
            for entry in self.corpus.entries(collection or None):
                score = score_entry(needle, entry)
                if score > 0:
                    results.append(
                        SearchResult(
                            id=entry.id,
                            title=entry.title,
                            description=entry.description,
                            collection=entry.collection,
                            score=score,
                        )
                    )
            results.sort(key=lambda result: (-result.score, result.collection, result.id))
        self._logger.debug("search.completed", query=needle, collection=collection, results=len(results))
        return results

    def _single(self, key: str, matches: list[DocumentEntry]) -> DocumentEntry:
        if not matches:
            raise DocumentNotFoundError(f"documentation not found for {key}")
        collections = sorted({entry.collection for entry in matches})
        if len(collections) > 1:
            raise AmbiguousDocumentError(key, collections)
        return matches[0]

    def get_entry(
        self,
        id: str | None = None,
        collection: str | None = None,
        title: str | None = None,
    ) -> DocumentEntry:
        scope = collection or None
        if id:
            matches = [
                item.entries[id]
                for item in self.corpus.collections()
                if (scope is None or item.name == scope) and id in item.entries
            ]
            return self._single(f"id: {id}", matches)
        if title:
            folded = title.casefold()
            matches = [
                entry
                for entry in self.corpus.entries(scope)
                if entry.title.casefold() == folded or entry.id.casefold() == folded
            ]
            return self._single(f"topic: {title}", matches)
        raise InvalidLookupError("either id or topic must be provided")

    def get_by_id_or_title(
        self,
        id: str | None = None,
        collection: str | None = None,
        title: str | None = None,
    ) -> str:
        return self.get_entry(id=id, collection=collection, title=title).body

    def list_collections(self) -> list[CollectionSummary]:
        return [
            CollectionSummary(
                name=item.name,
                display_name=item.display_name,
                description=item.description,
                topics=tuple(
                    TopicSummary(
                        id=entry.id,
                        title=entry.title,
                        description=entry.description,
                        keywords=tuple(entry.keywords),
                        collection=entry.collection,
                    )
                    for entry in sorted(item.entries.values(), key=lambda entry: entry.id)
                ),
            )
            for item in self.corpus.collections()
        ]


__all__ = [
    "AmbiguousDocumentError",
    "DocumentLookupError",
    "DocumentNotFoundError",
    "InvalidLookupError",
    "SearchEngine",
    "score_entry",
]
