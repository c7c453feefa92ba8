from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Mapping

import httpx
import pytest

from opencontext.cache import CacheStore
from opencontext.fetching import (
    FetchOrchestrator,
    NotFoundError,
    SingleFlight,
    TransientSourceError,
    UnknownSourceError,
    VersionResolver,
)
from opencontext.models import CacheKey, ContentRecord


class CountingAdapter:
    name = "go"
    namespace = "go"
    subcollection = "libraries"

    def __init__(self, *, resolver: VersionResolver | None = None, error: Exception | None = None) -> None:
        self.resolver = resolver
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        return subject, version

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        with self._lock:
            self.calls += 1
        if self.error is not None:
            raise self.error
        return {"synopsis": f"Package {subject} implements formatted I/O."}

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        return ContentRecord(
            identifier=subject,
            version=version,
            attributes={"synopsis": fields["synopsis"]},
            body=f"# {subject}\n\n{fields['synopsis']}\n",
        )


def test_cold_then_warm_fetch_calls_adapter_once(tmp_path: Path):
    adapter = CountingAdapter()
    orchestrator = FetchOrchestrator(CacheStore(tmp_path, 3600), [adapter])

    cold = orchestrator.fetch("go", "fmt")
    warm = orchestrator.fetch("go", "fmt")

    assert adapter.calls == 1
    assert cold.body == warm.body == "# fmt\n\nPackage fmt implements formatted I/O.\n"
    assert (tmp_path / "go" / "libraries" / "fmt.md").is_file()


def test_corrupt_entry_is_replaced_transparently(tmp_path: Path):
    store = CacheStore(tmp_path, 3600)
    adapter = CountingAdapter()
    orchestrator = FetchOrchestrator(store, [adapter])
    path = store.resolve_path(CacheKey("go", "libraries", "fmt"))
    path.parent.mkdir(parents=True)
    path.write_text("---\nonly one delimiter\n", encoding="utf-8")

    record = orchestrator.fetch("go", "fmt")

    assert adapter.calls == 1
    assert record.identifier == "fmt"
    assert store.load(path) == record


def test_unreadable_entry_that_cannot_be_removed_still_serves(tmp_path: Path):
    store = CacheStore(tmp_path, 3600)
    adapter = CountingAdapter()
    orchestrator = FetchOrchestrator(store, [adapter])
    path = store.resolve_path(CacheKey("go", "libraries", "fmt"))
    path.mkdir(parents=True)

    first = orchestrator.fetch("go", "fmt")
    second = orchestrator.fetch("go", "fmt")

    assert adapter.calls == 2
    assert first.body == second.body == "# fmt\n\nPackage fmt implements formatted I/O.\n"
    assert path.is_dir()
    assert [p.name for p in path.parent.iterdir()] == [path.name]


def test_failed_retrieval_is_not_persisted(tmp_path: Path):
    store = CacheStore(tmp_path, 3600)
    adapter = CountingAdapter(error=NotFoundError("module fmt not found"))
    orchestrator = FetchOrchestrator(store, [adapter])

    with pytest.raises(NotFoundError, match="not found"):
        orchestrator.fetch("go", "fmt")

    assert store.load(store.resolve_path(CacheKey("go", "libraries", "fmt"))) is None


def test_raw_http_errors_become_transient(tmp_path: Path):
    adapter = CountingAdapter(error=httpx.ConnectError("connection refused"))
    orchestrator = FetchOrchestrator(CacheStore(tmp_path, 3600), [adapter])

    with pytest.raises(TransientSourceError):
        orchestrator.fetch("go", "fmt")


def test_existing_entry_survives_a_later_failure(tmp_path: Path):
    store = CacheStore(tmp_path, 3600)
    adapter = CountingAdapter()
    orchestrator = FetchOrchestrator(store, [adapter])
    first = orchestrator.fetch("go", "fmt")

    adapter.error = TransientSourceError("upstream down")

    assert orchestrator.fetch("go", "fmt") == first
    assert adapter.calls == 1


def test_resolved_version_and_identifier_form_the_cache_key(tmp_path: Path):
    resolver = VersionResolver(lambda identifier: {"example.com/mod/v2": "v2.1.0"}[identifier], max_major=3)
    store = CacheStore(tmp_path, 3600)
    orchestrator = FetchOrchestrator(store, [CountingAdapter(resolver=resolver)])

    record = orchestrator.fetch("go", "example.com/mod")

    assert record.identifier == "example.com/mod/v2"
    assert record.version == "v2.1.0"
    assert store.resolve_path(CacheKey("go", "libraries", "example.com/mod/v2", "v2.1.0")).is_file()


def test_unresolvable_version_falls_back_to_unversioned_fetch(tmp_path: Path):
    def probe(identifier: str) -> str:
        raise NotFoundError(identifier)

    adapter = CountingAdapter(resolver=VersionResolver(probe, max_major=2))
    orchestrator = FetchOrchestrator(CacheStore(tmp_path, 3600), [adapter])

    record = orchestrator.fetch("go", "fmt")

    assert record.version == ""
    assert adapter.calls == 1


def test_unknown_source(tmp_path: Path):
    orchestrator = FetchOrchestrator(CacheStore(tmp_path, 3600))

    with pytest.raises(UnknownSourceError):
        orchestrator.fetch("cobol", "anything")


def test_blank_subject_is_rejected(tmp_path: Path):
    orchestrator = FetchOrchestrator(CacheStore(tmp_path, 3600), [CountingAdapter()])

    with pytest.raises(ValueError):
        orchestrator.fetch("go", "   ")


def test_concurrent_misses_share_one_retrieval(tmp_path: Path):
    release = threading.Event()

    class SlowAdapter(CountingAdapter):
        def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
            release.wait(timeout=5)
            return super().retrieve(subject, version)

    adapter = SlowAdapter()
    orchestrator = FetchOrchestrator(CacheStore(tmp_path, 3600), [adapter])
    results: list[ContentRecord] = []
    threads = [threading.Thread(target=lambda: results.append(orchestrator.fetch("go", "fmt"))) for _ in range(4)]
    for thread in threads:
        thread.start()
    time.sleep(0.2)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert adapter.calls == 1
    assert len(results) == 4
    assert len({record.body for record in results}) == 1


def test_single_flight_propagates_errors_to_every_waiter():
    flight = SingleFlight()

    def boom() -> str:
        raise NotFoundError("missing")

    with pytest.raises(NotFoundError):
        flight.run("key", boom)
    assert flight.in_flight() == 0
