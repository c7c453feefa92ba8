"""Fetch-or-serve-from-cache orchestration shared by every source adapter."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol, TypeVar

import httpx

from opencontext.cache.codec import CacheReadError
from opencontext.cache.store import CacheStore
from opencontext.fetching.errors import (
    FetchError,
    NoVersionsFoundError,
    TransientSourceError,
    UnknownSourceError,
)
from opencontext.fetching.versions import VersionResolver
from opencontext.metrics.observability import ServiceMetrics, TimedSection, get_logger
from opencontext.models import CacheKey, ContentRecord

T = TypeVar("T")


class SourceAdapter(Protocol):
    """Contract each upstream source implements.

    ``retrieve`` talks to the network and returns structured fields; ``format``
    is pure and turns those fields into a record. Adapters never touch the cache.
    """

    name: str
    namespace: str
    subcollection: str
    resolver: VersionResolver | None

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        ...

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        ...

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        ...


class SingleFlight:
    """Collapse concurrent calls for the same key into one execution."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, Future] = {}

    def run(self, key: str, func: Callable[[], T]) -> T:
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future
        if not leader:
            return future.result()

        try:
            result = func()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._calls.pop(key, None)

    def in_flight(self) -> int:
        with self._lock:
            return len(self._calls)


class FetchOrchestrator:
    """Serve records from the cache, retrieving and persisting them on a miss."""

    def __init__(
        self,
        store: CacheStore,
        adapters: Iterable[SourceAdapter] = (),
        *,
        single_flight: SingleFlight | None = None,
    ) -> None:
        self.store = store
        self._adapters: dict[str, SourceAdapter] = {}
        self._single_flight = single_flight or SingleFlight()
        self._logger = get_logger("fetch")
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: SourceAdapter) -> None:
        self._adapters[adapter.name] = adapter

    @property
    def sources(self) -> list[str]:
        return sorted(self._adapters)

    def adapter(self, name: str) -> SourceAdapter:
        try:
            return self._adapters[name]
        except KeyError:
            raise UnknownSourceError(f"unknown source: {name}") from None

    def fetch(self, name: str, subject: str, version: str = "") -> ContentRecord:
        adapter = self.adapter(name)
        subject, version = adapter.normalize(subject.strip(), version.strip())
        if not subject:
            raise ValueError("subject must not be empty")

        identifier = subject
        if not version and adapter.resolver is not None:
            try:
                resolution = adapter.resolver.resolve(subject)
            except NoVersionsFoundError as exc:
                # the source may still know an unversioned subject
                self._logger.warning("fetch.version_unresolved", source=name, subject=subject, detail=str(exc))
            else:
                identifier, version = resolution.identifier, resolution.version

        path = self.store.resolve_path(CacheKey(adapter.namespace, adapter.subcollection, identifier, version))
        with TimedSection(lambda duration: ServiceMetrics.observe_fetch(name, duration)):
            record = self._load(path)
            if record is not None:
                ServiceMetrics.observe_lookup(name, hit=True)
                self._logger.info("fetch.cache_hit", source=name, identifier=identifier, version=version)
                return record

            ServiceMetrics.observe_lookup(name, hit=False)
            self._logger.info("fetch.cache_miss", source=name, identifier=identifier, version=version)
            return self._single_flight.run(
                str(path),
                lambda: self._load(path) or self._refresh(adapter, identifier, version, path),
            )

    def _load(self, path: Path) -> ContentRecord | None:
        try:
            return self.store.load(path)
        except CacheReadError as exc:
            self._logger.warning("fetch.cache_unreadable", path=str(path), detail=str(exc))
            ServiceMetrics.observe_eviction("corrupt")
            try:
                self.store.remove(path)
            except OSError as remove_exc:
                self._logger.warning("fetch.cache_remove_failed", path=str(path), detail=str(remove_exc))
            return None

    def _refresh(self, adapter: SourceAdapter, identifier: str, version: str, path: Path) -> ContentRecord:
        try:
            fields = adapter.retrieve(identifier, version)
        except FetchError as exc:
            ServiceMetrics.observe_failure(adapter.name, type(exc).__name__)
            self._logger.warning("fetch.failed", source=adapter.name, identifier=identifier, detail=str(exc))
            raise
        except httpx.HTTPError as exc:
            ServiceMetrics.observe_failure(adapter.name, "TransientSourceError")
            raise TransientSourceError(f"request for {identifier} failed: {exc}") from exc

        record = adapter.format(identifier, version, fields)
        try:
            self.store.save(path, record)
        except OSError as exc:
            self._logger.warning("fetch.cache_write_failed", path=str(path), detail=str(exc))
        self._logger.info("fetch.complete", source=adapter.name, identifier=identifier, version=record.version)
        return record


__all__ = ["FetchOrchestrator", "SingleFlight", "SourceAdapter"]
