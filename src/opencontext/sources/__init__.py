"""Upstream source adapters."""

from __future__ import annotations

import httpx

from .base import HttpSourceAdapter, build_http_client
from .docker import DockerHubAdapter
from .go import GoLibraryAdapter, GoReleaseAdapter, GoStdlibExporter
from .registries import CratesAdapter, NpmAdapter, PyPIAdapter
from .releases import PRODUCTS, GitHubReleaseAdapter, NodeReleaseAdapter, ReleaseProduct


def default_adapters(
    client: httpx.Client,
    *,
    max_major_version: int = 10,
    github_token: str | None = None,
) -> list[HttpSourceAdapter]:
    """Every built-in adapter, sharing one HTTP client."""

    adapters: list[HttpSourceAdapter] = [
        GoLibraryAdapter(client, max_major=max_major_version),
        GoReleaseAdapter(client),
        NpmAdapter(client),
        PyPIAdapter(client),
        CratesAdapter(client),
        NodeReleaseAdapter(client),
        DockerHubAdapter(client),
    ]
    adapters.extend(GitHubReleaseAdapter(client, product, token=github_token) for product in PRODUCTS.values())
    return adapters


__all__ = [
    "CratesAdapter",
    "DockerHubAdapter",
    "GitHubReleaseAdapter",
    "GoLibraryAdapter",
    "GoReleaseAdapter",
    "GoStdlibExporter",
    "HttpSourceAdapter",
    "NodeReleaseAdapter",
    "NpmAdapter",
    "PRODUCTS",
    "PyPIAdapter",
    "ReleaseProduct",
    "build_http_client",
    "default_adapters",
]
