from __future__ import annotations

import json
from pathlib import Path

import pytest

from opencontext.cache import codec
from opencontext.models import ContentRecord, DocumentEntry
from opencontext.search import (
    AmbiguousDocumentError,
    Collection,
    DocumentCorpus,
    DocumentNotFoundError,
    InvalidLookupError,
    SearchEngine,
)
from opencontext.search.service import score_entry


def _entry(collection: str, id: str, title: str, *, keywords=(), description: str = "", body: str = "") -> DocumentEntry:
    return DocumentEntry(
        id=id,
        title=title,
        description=description,
        keywords=tuple(keywords),
        body=body,
        collection=collection,
    )


def _corpus(*entries: DocumentEntry) -> DocumentCorpus:
    collections: dict[str, Collection] = {}
    for entry in entries:
        collection = collections.setdefault(
            entry.collection,
            Collection(name=entry.collection, display_name=entry.collection.title(), description=""),
        )
        collection.entries[entry.id] = entry
    return DocumentCorpus(collections)


def _write_topic(root: Path, collection: str, payload: dict) -> None:
    topics = root / collection / "topics"
    topics.mkdir(parents=True, exist_ok=True)
    (topics / f"{payload['id']}.json").write_text(json.dumps(payload), encoding="utf-8")


def test_title_and_two_keywords_score_twenty():
    entry = _entry("go", "go-http-server", "HTTP Server", keywords=("http", "http/2", "server"))

    assert score_entry("http", entry) == 20


def test_every_field_contributes():
    entry = _entry(
        "go",
        "json",
        "Encoding JSON",
        keywords=("json",),
        description="JSON helpers",
        body="use json.Marshal",
    )

    assert score_entry("json", entry) == 10 + 5 + 3 + 1


def test_search_is_case_insensitive_and_skips_zero_scores():
    engine = SearchEngine(
        _corpus(
            _entry("go", "a", "Goroutines"),
            _entry("go", "b", "Channels", body="send on a goroutine"),
            _entry("go", "c", "Unrelated"),
        )
    )

    results = engine.search("  GOROUTINE ")

    assert [(result.id, result.score) for result in results] == [("a", 10), ("b", 1)]


def test_empty_query_returns_nothing():
    engine = SearchEngine(_corpus(_entry("go", "a", "Anything")))

    assert engine.search("") == []
    assert engine.search("   ") == []


def test_collection_filter_limits_results():
    engine = SearchEngine(
        _corpus(
            _entry("go", "go-http", "HTTP in Go"),
            _entry("typescript", "ts-http", "HTTP in TypeScript"),
        )
    )

    results = engine.search("http", "typescript")

    assert [result.collection for result in results] == ["typescript"]
    assert engine.search("http", "rust") == []


def test_ties_break_on_collection_then_id():
    engine = SearchEngine(
        _corpus(
            _entry("typescript", "b", "Errors"),
            _entry("go", "z", "Errors"),
            _entry("go", "a", "Errors"),
        )
    )

    results = engine.search("errors")

    assert [(result.collection, result.id) for result in results] == [("go", "a"), ("go", "z"), ("typescript", "b")]


def test_get_by_id_returns_body():
    engine = SearchEngine(_corpus(_entry("go", "go-http-server", "HTTP Server", body="# HTTP\n")))

    assert engine.get_by_id_or_title(id="go-http-server") == "# HTTP\n"


def test_id_lookup_does_not_fall_back_to_title():
    engine = SearchEngine(_corpus(_entry("go", "go-http-server", "HTTP Server")))

    with pytest.raises(DocumentNotFoundError):
        engine.get_by_id_or_title(id="missing", title="HTTP Server")


def test_title_lookup_is_case_insensitive_and_matches_ids():
    engine = SearchEngine(_corpus(_entry("go", "go-http-server", "HTTP Server", body="body")))

    assert engine.get_by_id_or_title(title="http server") == "body"
    assert engine.get_by_id_or_title(title="GO-HTTP-SERVER") == "body"


def test_ambiguous_id_needs_a_collection():
    engine = SearchEngine(
        _corpus(
            _entry("go", "errors", "Errors", body="go errors"),
            _entry("typescript", "errors", "Errors", body="ts errors"),
        )
    )

    with pytest.raises(AmbiguousDocumentError) as excinfo:
        engine.get_by_id_or_title(id="errors")
    assert excinfo.value.collections == ["go", "typescript"]
    assert engine.get_by_id_or_title(id="errors", collection="typescript") == "ts errors"


def test_lookup_requires_id_or_title():
    engine = SearchEngine(_corpus())

    with pytest.raises(InvalidLookupError, match="either id or topic must be provided"):
        engine.get_by_id_or_title()


def test_list_collections_sorted_with_topics():
    engine = SearchEngine(
        _corpus(
            _entry("typescript", "ts-types", "Types"),
            _entry("go", "go-b", "B"),
            _entry("go", "go-a", "A"),
        )
    )

    collections = engine.list_collections()

    assert [collection.name for collection in collections] == ["go", "typescript"]
    assert [topic.id for topic in collections[0].topics] == ["go-a", "go-b"]


def test_corpus_loads_json_topics_and_metadata(tmp_path: Path):
    (tmp_path / "go").mkdir()
    (tmp_path / "go" / "metadata.json").write_text(
        json.dumps({"name": "go", "displayName": "Go", "description": "Go standard library"}),
        encoding="utf-8",
    )
    _write_topic(
        tmp_path,
        "go",
        {
            "id": "net_http",
            "title": "Go Package: net/http",
            "description": "HTTP client and server",
            "keywords": ["http", "net/http"],
            "content": "# net/http\n",
        },
    )

    corpus = DocumentCorpus.load(tmp_path)
    collection = corpus.collection("go")

    assert collection.display_name == "Go"
    assert collection.description == "Go standard library"
    assert collection.entries["net_http"].keywords == ("http", "net/http")
    assert len(corpus) == 1


def test_corpus_defaults_and_skips_bad_files(tmp_path: Path):
    topics = tmp_path / "rust" / "topics"
    topics.mkdir(parents=True)
    (topics / "broken.json").write_text("{not json", encoding="utf-8")
    (topics / "notes.txt").write_text("ignored", encoding="utf-8")
    (tmp_path / ".hidden").mkdir()
    _write_topic(tmp_path, "rust", {"id": "ownership", "title": "Ownership", "content": "borrowing"})

    corpus = DocumentCorpus.load(tmp_path)

    assert [collection.name for collection in corpus.collections()] == ["rust"]
    rust = corpus.collection("rust")
    assert rust.display_name == "Rust"
    assert rust.description == "Documentation for rust"
    assert list(rust.entries) == ["ownership"]


def test_corpus_reads_cached_records(tmp_path: Path):
    topics = tmp_path / "npm" / "topics"
    topics.mkdir(parents=True)
    record = ContentRecord(
        identifier="express",
        version="4.18.2",
        attributes={"title": "Express", "description": "Fast web framework", "keywords": "web, http"},
        body="# express\n",
    )
    (topics / "express.md").write_text(codec.encode(record), encoding="utf-8")

    entry = DocumentCorpus.load(tmp_path).collection("npm").entries["express"]

    assert entry.title == "Express"
    assert entry.keywords == ("web", "http")
    assert entry.body == "# express\n"


def test_missing_root_gives_empty_corpus(tmp_path: Path):
    corpus = DocumentCorpus.load(tmp_path / "absent")

    assert len(corpus) == 0
    assert SearchEngine(corpus).search("anything") == []
