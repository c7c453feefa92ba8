from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from opencontext.cache import CacheStore
from opencontext.fetching import FetchOrchestrator, NotFoundError, TransientSourceError
from opencontext.search import DocumentCorpus, SearchEngine
from opencontext.sources import (
    PRODUCTS,
    CratesAdapter,
    DockerHubAdapter,
    GitHubReleaseAdapter,
    GoLibraryAdapter,
    GoReleaseAdapter,
    GoStdlibExporter,
    NodeReleaseAdapter,
    NpmAdapter,
    PyPIAdapter,
    build_http_client,
    default_adapters,
)
from opencontext.sources.docker import parse_image_name
from opencontext.sources.go import escape_module_path

GIN_PAGE = """
<html>
  <head>
    <title>gin package - github.com/gin-gonic/gin</title>
    <meta name="description" content="Package gin implements a HTTP web framework called gin.">
  </head>
  <body>
    <a href="https://github.com/gin-gonic/gin">github.com/gin-gonic/gin</a>
    <span>MIT</span>
  </body>
</html>
"""

GO_RELEASE_PAGE = """
<html><body>
  <article>
    <h2>Introduction to Go 1.21</h2>
    <p>The latest Go release,   version 1.21, arrives six months after Go 1.20.</p>
    <ul><li>New <code>min</code> and <code>max</code> builtins</li><li>clear</li></ul>
    <pre>go run .</pre>
  </article>
</body></html>
"""


class MockUpstream:
    """Serves canned responses keyed by URL; unknown URLs answer 404."""

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if request.url.query:
            key = f"{key}?{request.url.query.decode()}"
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404)
        if callable(route):
            return route(request)
        status, payload = route
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    def client(self) -> httpx.Client:
        return build_http_client(transport=httpx.MockTransport(self))


def _orchestrator(tmp_path: Path, *adapters) -> FetchOrchestrator:
    return FetchOrchestrator(CacheStore(tmp_path, 3600), adapters)


def test_escape_module_path():
    assert escape_module_path("github.com/Azure/azure-sdk-for-go") == "github.com/!azure/azure-sdk-for-go"


def test_go_library_resolves_latest_and_renders(tmp_path: Path):
    upstream = MockUpstream(
        {
            "https://proxy.golang.org/github.com/gin-gonic/gin/@latest": (200, {"Version": "v1.10.0"}),
            "https://pkg.go.dev/github.com/gin-gonic/gin@v1.10.0": (200, GIN_PAGE),
        }
    )
    orchestrator = _orchestrator(tmp_path, GoLibraryAdapter(upstream.client(), max_major=3))

    record = orchestrator.fetch("go", "https://github.com/gin-gonic/gin/")

    assert record.identifier == "github.com/gin-gonic/gin"
    assert record.version == "v1.10.0"
    assert record.attributes["synopsis"] == "Package gin implements a HTTP web framework called gin."
    assert record.attributes["repository"] == "https://github.com/gin-gonic/gin"
    assert record.attributes["license"] == "MIT"
    assert "go get github.com/gin-gonic/gin@v1.10.0" in record.body
    probed = [str(request.url) for request in upstream.requests if request.url.host == "proxy.golang.org"]
    assert len(probed) == 3


def test_go_release_notes(tmp_path: Path):
    upstream = MockUpstream({"https://go.dev/doc/go1.21": (200, GO_RELEASE_PAGE)})
    orchestrator = _orchestrator(tmp_path, GoReleaseAdapter(upstream.client()))

    record = orchestrator.fetch("go-release", "go", "go1.21")

    assert record.version == "1.21"
    assert record.body.startswith("# Go 1.21 Release Notes\n")
    assert "## Introduction to Go 1.21" in record.body
    assert "version 1.21, arrives six months" in record.body
    assert "- New min and max builtins\n- clear" in record.body
    assert "```\ngo run .\n```" in record.body


def test_go_release_without_article_still_links(tmp_path: Path):
    upstream = MockUpstream({"https://go.dev/doc/go1.99": (200, "<html><body>nothing</body></html>")})
    orchestrator = _orchestrator(tmp_path, GoReleaseAdapter(upstream.client()))

    record = orchestrator.fetch("go-release", "go", "1.99")

    assert "## Overview" in record.body
    assert record.attributes["releaseURL"] == "https://go.dev/doc/go1.99"


def test_npm_package(tmp_path: Path):
    upstream = MockUpstream(
        {
            "https://registry.npmjs.org/express/4.18.2": (
                200,
                {
                    "name": "express",
                    "version": "4.18.2",
                    "description": "Fast, unopinionated, minimalist web framework",
                    "license": "MIT",
                    "repository": {"type": "git", "url": "git+https://github.com/expressjs/express.git"},
                    "author": {"name": "TJ Holowaychuk"},
                },
            )
        }
    )
    orchestrator = _orchestrator(tmp_path, NpmAdapter(upstream.client()))

    record = orchestrator.fetch("npm", "express", "4.18.2")

    assert record.attributes["repository"] == "https://github.com/expressjs/express"
    assert record.attributes["author"] == "TJ Holowaychuk"
    assert "npm install express@4.18.2" in record.body


def test_npm_defaults_to_latest_tag_and_records_the_resolved_version(tmp_path: Path):
    upstream = MockUpstream({"https://registry.npmjs.org/express/latest": (200, {"name": "express", "version": "5.0.0"})})
    orchestrator = _orchestrator(tmp_path, NpmAdapter(upstream.client()))

    record = orchestrator.fetch("npm", "express")
    cached = (tmp_path / "npm" / "packages" / "express@latest.md").read_text(encoding="utf-8")

    assert record.version == "5.0.0"
    assert 'version: "5.0.0"' in cached
    assert "npm install express@5.0.0" in record.body
    assert orchestrator.fetch("npm", "express") == record


def test_pypi_package_records_latest(tmp_path: Path):
    upstream = MockUpstream(
        {
            "https://pypi.org/pypi/requests/json": (
                200,
                {
                    "info": {
                        "name": "requests",
                        "version": "2.31.0",
                        "summary": "Python HTTP for Humans.",
                        "license": "Apache 2.0",
                        "project_urls": {"Source": "https://github.com/psf/requests"},
                    }
                },
            )
        }
    )
    orchestrator = _orchestrator(tmp_path, PyPIAdapter(upstream.client()))

    record = orchestrator.fetch("python", "requests")

    assert record.version == ""
    assert record.attributes["latest"] == "2.31.0"
    assert record.attributes["repository"] == "https://github.com/psf/requests"
    assert "pip install requests==2.31.0" in record.body


def test_crates_package_sends_json_accept(tmp_path: Path):
    upstream = MockUpstream(
        {
            "https://crates.io/api/v1/crates/serde": (
                200,
                {
                    "crate": {"name": "serde", "description": "A serialization framework", "downloads": 1000},
                    "versions": [{"num": "1.0.190", "license": "MIT OR Apache-2.0"}],
                },
            )
        }
    )
    orchestrator = _orchestrator(tmp_path, CratesAdapter(upstream.client()))

    record = orchestrator.fetch("rust", "serde")

    assert upstream.requests[0].headers["Accept"] == "application/json"
    assert record.attributes["license"] == "MIT OR Apache-2.0"
    assert record.attributes["downloads"] == "1000"
    assert 'serde = "1.0.190"' in record.body


def test_node_release(tmp_path: Path):
    upstream = MockUpstream(
        {
            "https://nodejs.org/dist/index.json": (
                200,
                [
                    {"version": "v21.0.0", "date": "2023-10-17", "lts": False},
                    {"version": "v20.10.0", "date": "2023-11-22", "lts": "Iron", "npm": "10.2.3", "v8": "11.3"},
                ],
            )
        }
    )
    orchestrator = _orchestrator(tmp_path, NodeReleaseAdapter(upstream.client()))

    record = orchestrator.fetch("node", "node", "20.10.0")

    assert record.version == "v20.10.0"
    assert record.attributes == {"releaseDate": "2023-11-22", "lts": "Iron"}
    assert "nvm install v20.10.0" in record.body

    with pytest.raises(NotFoundError, match="v9.9.9"):
        orchestrator.fetch("node", "node", "9.9.9")


def test_github_release_uses_tag_prefix_and_token(tmp_path: Path):
    upstream = MockUpstream(
        {
            "https://api.github.com/repos/jenkinsci/jenkins/releases/tags/jenkins-2.440.3": (
                200,
                {
                    "html_url": "https://github.com/jenkinsci/jenkins/releases/tag/jenkins-2.440.3",
                    "published_at": "2024-04-17T12:00:00Z",
                    "body": "Security fixes",
                },
            )
        }
    )
    adapter = GitHubReleaseAdapter(upstream.client(), PRODUCTS["jenkins"], token="secret")
    orchestrator = _orchestrator(tmp_path, adapter)

    record = orchestrator.fetch("jenkins", "jenkins", "2.440.3")

    assert upstream.requests[0].headers["Authorization"] == "Bearer secret"
    assert record.attributes["releaseDate"] == "2024-04-17"
    assert "docker pull jenkins/jenkins:2.440.3" in record.body
    assert "Security fixes" in record.body


def test_github_release_missing_version(tmp_path: Path):
    orchestrator = _orchestrator(tmp_path, GitHubReleaseAdapter(MockUpstream({}).client(), PRODUCTS["terraform"]))

    with pytest.raises(NotFoundError, match="Terraform version 0.0.1 not found"):
        orchestrator.fetch("terraform", "terraform", "0.0.1")


def test_docker_image_tolerates_missing_tag_list(tmp_path: Path):
    upstream = MockUpstream(
        {
            "https://hub.docker.com/v2/repositories/library/nginx/tags/1.25": (
                200,
                {
                    "digest": "sha256:abc",
                    "last_updated": "2024-01-01T00:00:00Z",
                    "full_size": 2 * 1024 * 1024,
                    "images": [{"os": "linux", "architecture": "amd64"}, {"os": "linux", "architecture": "amd64"}],
                },
            ),
            "https://hub.docker.com/v2/repositories/library/nginx/tags?page_size=20": (500, {}),
        }
    )
    orchestrator = _orchestrator(tmp_path, DockerHubAdapter(upstream.client()))

    record = orchestrator.fetch("docker", "nginx:1.25")

    assert record.identifier == "nginx"
    assert record.version == "1.25"
    assert "**Size:** 2.00 MB" in record.body
    assert record.body.count("linux/amd64") == 1
    assert "Recent Tags" not in record.body


def test_parse_image_name():
    assert parse_image_name("nginx") == ("library", "nginx")
    assert parse_image_name("bitnami/redis") == ("bitnami", "redis")


def test_upstream_errors_map_to_fetch_error_kinds(tmp_path: Path):
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    upstream = MockUpstream(
        {
            "https://pypi.org/pypi/broken/json": (503, {}),
            "https://pypi.org/pypi/slow/json": timeout,
            "https://pypi.org/pypi/garbled/json": (200, "<html>"),
        }
    )
    orchestrator = _orchestrator(tmp_path, PyPIAdapter(upstream.client()))

    with pytest.raises(NotFoundError):
        orchestrator.fetch("python", "missing")
    with pytest.raises(TransientSourceError, match="503"):
        orchestrator.fetch("python", "broken")
    with pytest.raises(TransientSourceError, match="timed out"):
        orchestrator.fetch("python", "slow")
    with pytest.raises(TransientSourceError, match="malformed"):
        orchestrator.fetch("python", "garbled")


def test_default_adapters_cover_every_source():
    names = {adapter.name for adapter in default_adapters(MockUpstream({}).client())}

    assert {"go", "go-release", "npm", "python", "rust", "node", "docker"} <= names
    assert set(PRODUCTS) <= names


def test_stdlib_export_builds_a_searchable_collection(tmp_path: Path):
    index = '<a href="/fmt">fmt</a><a href="/net/http">net/http</a><a href="/internal/abi">abi</a><a href="/bufio">bufio</a>'
    upstream = MockUpstream(
        {
            "https://pkg.go.dev/std": (200, index),
            "https://pkg.go.dev/fmt": (200, '<meta name="description" content="Package fmt implements formatted I/O.">'),
            "https://pkg.go.dev/net/http": (200, '<meta name="description" content="Package http provides HTTP client and server implementations.">'),
        }
    )
    pauses: list[float] = []
    exporter = GoStdlibExporter(upstream.client(), limit=2, delay_seconds=0.25, sleep=pauses.append)

    written = exporter.export(tmp_path)

    assert written == 2
    assert pauses == [0.25]
    metadata = json.loads((tmp_path / "go" / "metadata.json").read_text(encoding="utf-8"))
    assert metadata["displayName"] == "Go"
    assert sorted(path.name for path in (tmp_path / "go" / "topics").iterdir()) == ["fmt.json", "net_http.json"]

    results = SearchEngine(DocumentCorpus.load(tmp_path)).search("http")
    assert results[0].id == "net_http"
