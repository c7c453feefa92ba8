"""Resolution of the latest release across parallel major-version paths."""

from __future__ import annotations

from typing import Callable

import httpx

from opencontext.fetching.errors import FetchError, NoVersionsFoundError
from opencontext.metrics.observability import get_logger
from opencontext.models import VersionResolution

VersionProbe = Callable[[str], str]


class VersionResolver:
    """Find the newest release of an artifact whose major lines live at ``<base>/vN``.

    The base path is probed first, then every suffix from ``/v2`` up to
    ``/v{max_major}`` in ascending order. Each successful probe replaces the
    current candidate, so the highest-numbered line that answers wins even when
    lines in between are missing. A failed probe is logged and skipped.
    """

    def __init__(self, probe: VersionProbe, *, max_major: int = 10) -> None:
        if max_major < 1:
            raise ValueError("max_major must be >= 1")
        self._probe = probe
        self.max_major = max_major
        self._logger = get_logger("versions")

    def candidates(self, base: str) -> list[str]:
        return [base] + [f"{base}/v{major}" for major in range(2, self.max_major + 1)]

    def _try(self, identifier: str) -> str | None:
        try:
            version = self._probe(identifier)
        except (FetchError, httpx.HTTPError, ValueError, KeyError) as exc:
            self._logger.debug("versions.probe_failed", identifier=identifier, detail=str(exc))
            return None
        if not version:
            self._logger.debug("versions.probe_empty", identifier=identifier)
            return None
        return version

    def resolve(self, base: str) -> VersionResolution:
        best: VersionResolution | None = None
        for identifier in self.candidates(base):
            version = self._try(identifier)
            if version is not None:
                best = VersionResolution(version=version, identifier=identifier)

        if best is None:
            raise NoVersionsFoundError(f"no versions found for {base}")
        if best.identifier != base:
            self._logger.info(
                "versions.major_suffix_selected",
                base=base,
                identifier=best.identifier,
                version=best.version,
            )
        return best


__all__ = ["VersionProbe", "VersionResolver"]
