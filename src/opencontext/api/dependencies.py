"""Wiring of the long-lived service objects shared by both transports."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from opencontext.api.dispatcher import McpDispatcher
from opencontext.cache.store import CacheStore
from opencontext.config import Settings
from opencontext.fetching import FetchOrchestrator
from opencontext.search import DocumentCorpus, SearchEngine
from opencontext.sources import build_http_client, default_adapters


@dataclass(frozen=True)
class AppDependencies:
    settings: Settings
    http_client: httpx.Client
    store: CacheStore
    corpus: DocumentCorpus
    search: SearchEngine
    orchestrator: FetchOrchestrator
    dispatcher: McpDispatcher

    def close(self) -> None:
        self.http_client.close()


def build_dependencies(
    settings: Settings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> AppDependencies:
    """Construct the corpus, cache, HTTP client, orchestrator and dispatcher once."""

    from opencontext import __version__

    client = build_http_client(
        timeout_seconds=settings.http_timeout_seconds,
        user_agent=settings.user_agent,
        transport=transport,
    )
    store = CacheStore(settings.cache_dir, settings.cache_ttl_seconds)
    corpus = DocumentCorpus.load(settings.corpus_root)
    search = SearchEngine(corpus)
    orchestrator = FetchOrchestrator(
        store,
        default_adapters(
            client,
            max_major_version=settings.max_major_version,
            github_token=settings.github_token,
        ),
    )
    dispatcher = McpDispatcher(search, orchestrator, server_version=__version__)
    return AppDependencies(
        settings=settings,
        http_client=client,
        store=store,
        corpus=corpus,
        search=search,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
    )


__all__ = ["AppDependencies", "build_dependencies"]
