"""Filesystem-backed cache of content records with TTL expiry."""

from __future__ import annotations

import hashlib
import os
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable
from urllib.parse import quote

from opencontext.cache import codec
from opencontext.cache.codec import CacheCorruptError, CacheReadError
from opencontext.metrics.observability import ServiceMetrics, get_logger
from opencontext.models import CacheKey, ContentRecord

RECORD_SUFFIX = ".md"
_MAX_STEM_LENGTH = 200
_SEGMENT_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def _safe_name(value: str) -> str:
    # percent-encoding keeps distinct inputs distinct, '%' included
    return quote(value, safe="")


class CacheStore:
    """Stores one record per key under ``<root>/<namespace>/<subcollection>/``.

    Staleness is judged from file modification time only. ``ttl_seconds == 0``
    disables expiry. Writes go through a temporary sibling and an atomic rename,
    so readers observe either the previous record or the new one.
    """

    def __init__(
        self,
        root: Path,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.root = Path(root)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._logger = get_logger("cache")

    def resolve_path(self, key: CacheKey) -> Path:
        for segment in (key.namespace, key.subcollection):
            if not _SEGMENT_PATTERN.match(segment):
                raise ValueError(f"invalid cache segment: {segment!r}")
        if not key.identifier:
            raise ValueError("cache identifier must not be empty")
        stem = _safe_name(key.identifier)
        if key.version:
            stem = f"{stem}@{_safe_name(key.version)}"
        if len(stem) > _MAX_STEM_LENGTH:
            digest = hashlib.sha256(stem.encode("utf-8")).hexdigest()[:16]
            stem = f"{stem[:_MAX_STEM_LENGTH - 17]}~{digest}"
        return self.root / key.namespace / key.subcollection / f"{stem}{RECORD_SUFFIX}"

    def _expired(self, modified_at: float) -> bool:
        if self.ttl_seconds == 0:
            return False
        return self._clock() - modified_at >= self.ttl_seconds

    def is_stale(self, path: Path) -> bool:
        if self.ttl_seconds == 0:
            return False
        try:
            modified_at = path.stat().st_mtime
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise CacheReadError(f"failed to stat {path}: {exc}") from exc
        return self._expired(modified_at)

    def load(self, path: Path) -> ContentRecord | None:
        """Return the cached record, or ``None`` when absent or expired.

        Expired entries are deleted before returning. Unreadable entries raise
        :class:`CacheReadError`; malformed ones :class:`CacheCorruptError`.
        """

        try:
            modified_at = path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheReadError(f"failed to stat {path}: {exc}") from exc

        if self._expired(modified_at):
            self._logger.info(
                "cache.expired",
                path=str(path),
                age_seconds=round(self._clock() - modified_at, 3),
                ttl_seconds=self.ttl_seconds,
            )
            try:
                self.remove(path)
            except OSError as exc:
                raise CacheReadError(f"failed to remove expired {path}: {exc}") from exc
            ServiceMetrics.observe_eviction("expired")
            return None

        try:
            text = path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise CacheCorruptError(f"{path} is not valid UTF-8") from exc
        except OSError as exc:
            raise CacheReadError(f"failed to read {path}: {exc}") from exc
        return codec.decode(text)

    def save(self, path: Path, record: ContentRecord) -> None:
        payload = codec.encode(record)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._logger.debug("cache.saved", path=str(path), bytes=len(payload))

    def remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)

    def clear(self, subtree: str | None = None) -> bool:
        """Delete the whole cache, or one namespace below it.

        Returns ``True`` when something was removed.
        """

        if subtree and not _SEGMENT_PATTERN.match(subtree):
            raise ValueError(f"invalid cache segment: {subtree!r}")
        target = self.root / subtree if subtree else self.root
        if not target.exists():
            return False
        shutil.rmtree(target)
        self._logger.info("cache.cleared", path=str(target))
        return True


__all__ = ["CacheStore", "RECORD_SUFFIX"]
