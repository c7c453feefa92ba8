from __future__ import annotations

import httpx
import pytest

from opencontext.fetching import NoVersionsFoundError, NotFoundError, VersionResolver


class StubProbe:
    def __init__(self, versions: dict[str, str]) -> None:
        self.versions = versions
        self.calls: list[str] = []

    def __call__(self, identifier: str) -> str:
        self.calls.append(identifier)
        if identifier not in self.versions:
            raise NotFoundError(f"{identifier} not found")
        return self.versions[identifier]


def test_highest_major_suffix_wins_even_with_gaps():
    probe = StubProbe(
        {
            "example.com/mod": "v1.9.0",
            "example.com/mod/v2": "v2.3.1",
            "example.com/mod/v4": "v4.0.2",
        }
    )
    resolver = VersionResolver(probe, max_major=10)

    resolution = resolver.resolve("example.com/mod")

    assert resolution.identifier == "example.com/mod/v4"
    assert resolution.version == "v4.0.2"
    assert probe.calls == resolver.candidates("example.com/mod")


def test_base_only():
    resolver = VersionResolver(StubProbe({"github.com/gin-gonic/gin": "v1.10.0"}))

    resolution = resolver.resolve("github.com/gin-gonic/gin")

    assert resolution.identifier == "github.com/gin-gonic/gin"
    assert resolution.version == "v1.10.0"


def test_candidates_are_probed_in_ascending_order():
    resolver = VersionResolver(StubProbe({}), max_major=4)

    assert resolver.candidates("m") == ["m", "m/v2", "m/v3", "m/v4"]


def test_nothing_resolves():
    resolver = VersionResolver(StubProbe({}), max_major=3)

    with pytest.raises(NoVersionsFoundError, match="no versions found for m"):
        resolver.resolve("m")


def test_network_errors_and_empty_versions_count_as_failures():
    def probe(identifier: str) -> str:
        if identifier == "m":
            raise httpx.ConnectError("boom")
        if identifier == "m/v2":
            return ""
        if identifier == "m/v3":
            return "v3.0.0"
        raise NotFoundError(identifier)

    resolution = VersionResolver(probe, max_major=5).resolve("m")

    assert resolution.identifier == "m/v3"


def test_max_major_must_be_positive():
    with pytest.raises(ValueError):
        VersionResolver(StubProbe({}), max_major=0)
