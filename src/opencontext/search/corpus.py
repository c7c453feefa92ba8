"""Read-only document corpus loaded from a directory tree at startup."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Mapping

from opencontext.cache import codec
from opencontext.cache.codec import CacheReadError
from opencontext.metrics.observability import get_logger
from opencontext.models import DocumentEntry

METADATA_FILENAME = "metadata.json"
TOPICS_DIRNAME = "topics"

logger = get_logger("corpus")


@dataclass
class Collection:
    name: str
    display_name: str
    description: str
    entries: dict[str, DocumentEntry] = field(default_factory=dict)


def _keywords(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if isinstance(item, (str, int, float)))
    return ()


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _default_collection(name: str) -> Collection:
    return Collection(name=name, display_name=name.capitalize(), description=f"Documentation for {name}")


def _read_metadata(directory: Path) -> Collection:
    fallback = _default_collection(directory.name)
    path = directory / METADATA_FILENAME
    if not path.is_file():
        return fallback
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("corpus.metadata_invalid", path=str(path), detail=str(exc))
        return fallback
    if not isinstance(data, dict):
        logger.warning("corpus.metadata_invalid", path=str(path), detail="not an object")
        return fallback
    # the directory name is the collection key regardless of metadata
    return Collection(
        name=directory.name,
        display_name=_text(data, "displayName") or fallback.display_name,
        description=_text(data, "description") or fallback.description,
    )


def _entry_from_json(path: Path, collection: str) -> DocumentEntry | None:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        return None
    entry_id = _text(data, "id") or path.stem
    return DocumentEntry(
        id=entry_id,
        title=_text(data, "title") or entry_id,
        description=_text(data, "description"),
        keywords=_keywords(data.get("keywords")),
        body=_text(data, "content"),
        collection=collection,
    )


def _entry_from_record(path: Path, collection: str) -> DocumentEntry:
    record = codec.decode(path.read_text(encoding="utf-8"))
    attributes = record.attributes
    entry_id = attributes.get("id") or record.identifier or path.stem
    return DocumentEntry(
        id=entry_id,
        title=attributes.get("title") or entry_id,
        description=attributes.get("description") or attributes.get("synopsis", ""),
        keywords=_keywords(attributes.get("keywords", "")),
        body=record.body,
        collection=collection,
    )


class DocumentCorpus:
    """Collections of topics keyed by collection name, then by topic id.

    Layout on disk::

        <root>/<collection>/metadata.json      optional
        <root>/<collection>/topics/*.json      id, title, description, content, keywords
        <root>/<collection>/topics/*.md        content records

    Files are read in sorted name order; a later file with a duplicate id wins.
    """

    def __init__(self, collections: Mapping[str, Collection] | None = None) -> None:
        self._collections: dict[str, Collection] = dict(collections or {})

    @classmethod
    def load(cls, root: Path) -> "DocumentCorpus":
        root = Path(root)
        collections: dict[str, Collection] = {}
        if not root.is_dir():
            logger.info("corpus.root_missing", root=str(root))
            return cls(collections)

        for directory in sorted(path for path in root.iterdir() if path.is_dir()):
            if directory.name.startswith("."):
                continue
            collection = _read_metadata(directory)
            topics_dir = directory / TOPICS_DIRNAME
            if topics_dir.is_dir():
                for path in sorted(topics_dir.iterdir()):
                    entry = cls._load_entry(path, collection.name)
                    if entry is not None:
                        collection.entries[entry.id] = entry
            collections[collection.name] = collection

        logger.info(
            "corpus.loaded",
            root=str(root),
            collections=len(collections),
            entries=sum(len(c.entries) for c in collections.values()),
        )
        return cls(collections)

    @staticmethod
    def _load_entry(path: Path, collection: str) -> DocumentEntry | None:
        if not path.is_file():
            return None
        try:
            if path.suffix == ".json":
                return _entry_from_json(path, collection)
            if path.suffix == ".md":
                return _entry_from_record(path, collection)
        except (OSError, ValueError, CacheReadError) as exc:
            logger.warning("corpus.entry_skipped", path=str(path), detail=str(exc))
        return None

    def collection(self, name: str) -> Collection | None:
        return self._collections.get(name)

    def collections(self) -> list[Collection]:
        return [self._collections[name] for name in sorted(self._collections)]

    def entries(self, collection: str | None = None) -> Iterator[DocumentEntry]:
        for item in self.collections():
            if collection is not None and item.name != collection:
                continue
            yield from item.entries.values()

    def __len__(self) -> int:
        return sum(len(item.entries) for item in self._collections.values())


__all__ = ["Collection", "DocumentCorpus"]
