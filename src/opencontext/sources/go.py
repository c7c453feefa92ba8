"""Go modules, Go release notes and the standard library export."""

from __future__ import annotations

import json
import re
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import httpx
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from opencontext.fetching.errors import FetchError
from opencontext.fetching.versions import VersionResolver
from opencontext.metrics.observability import get_logger
from opencontext.models import ContentRecord
from opencontext.sources.base import HttpSourceAdapter, MarkdownBuilder, string_field

PKG_GO_DEV = "https://pkg.go.dev"
GO_DEV = "https://go.dev"
GO_PROXY = "https://proxy.golang.org"

_REPOSITORY_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")
_LICENSE_PATTERN = re.compile(r"\b(MIT|Apache|BSD|LGPL|GPL|MPL)\b")
_STDLIB_HREF = re.compile(r"^/([a-z][a-z0-9/]*)$")
_PRIORITY_PACKAGES = (
    "fmt", "io", "os", "strings", "strconv", "time",
    "net/http", "encoding/json", "context", "sync",
    "bufio", "bytes", "errors", "log", "path/filepath",
    "regexp", "sort", "math", "crypto/sha256", "crypto/md5",
    "crypto/tls", "database/sql", "html/template", "text/template",
    "net/url", "io/ioutil", "reflect", "runtime", "testing",
)


def escape_module_path(path: str) -> str:
    """Apply the module proxy case encoding: ``Azure`` becomes ``!azure``."""

    return "".join(f"!{char.lower()}" if char.isupper() else char for char in path)


def extract_synopsis(soup: BeautifulSoup) -> str:
    meta = soup.find("meta", attrs={"name": "description"})
    if isinstance(meta, Tag):
        return str(meta.get("content") or "").strip()
    return ""


def extract_repository(soup: BeautifulSoup) -> str:
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"])
        if any(host in href for host in _REPOSITORY_HOSTS):
            return href
    return ""


def extract_license(soup: BeautifulSoup) -> str:
    for node in soup.descendants:
        if isinstance(node, Tag) and node.name == "a":
            text = node.get_text(" ", strip=True)
            if "license" in text.lower():
                return text
        elif isinstance(node, NavigableString) and not isinstance(node, Comment):
            if node.parent is not None and node.parent.name in ("script", "style"):
                continue
            match = _LICENSE_PATTERN.search(str(node))
            if match:
                return match.group(1)
    return ""


def _text(node: Tag) -> str:
    return " ".join(node.get_text(" ", strip=True).split())


def extract_release_notes(soup: BeautifulSoup) -> tuple[str, bool]:
    """Render the release-notes article as markdown; report whether one was found."""

    article = soup.find("article") or soup.find("div", class_="Article")
    if not isinstance(article, Tag):
        return "", False
    parts = MarkdownBuilder()
    for element in article.find_all(["h2", "h3", "h4", "p", "pre", "ul", "ol"]):
        if element.find_parent(["ul", "ol", "pre"]) is not None:
            continue
        if element.name in ("h2", "h3", "h4"):
            text = _text(element)
            if text:
                parts.heading(text, level=int(element.name[1]))
        elif element.name == "p":
            parts.paragraph(_text(element))
        elif element.name == "pre":
            code = element.get_text().strip()
            if code:
                parts.code(code)
        else:
            items = [_text(item) for item in element.find_all("li", recursive=False)]
            parts.bullets([item for item in items if item])
    return parts.render(), True


class GoLibraryAdapter(HttpSourceAdapter):
    """Go modules and packages from pkg.go.dev, versioned through the module proxy."""

    name = "go"
    namespace = "go"
    subcollection = "libraries"
    label = "pkg.go.dev"

    def __init__(self, client: httpx.Client, *, max_major: int = 10) -> None:
        super().__init__(client)
        self.resolver = VersionResolver(self.latest_version, max_major=max_major)

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        for prefix in ("https://", "http://"):
            if subject.startswith(prefix):
                subject = subject[len(prefix):]
        return subject.strip("/"), version

    def latest_version(self, module_path: str) -> str:
        data = self._get_json(
            f"{GO_PROXY}/{escape_module_path(module_path)}/@latest",
            what=f"module {module_path}",
        )
        if not isinstance(data, dict):
            raise FetchError(f"unexpected proxy payload for {module_path}")
        return string_field(data, "Version")

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        url = f"{PKG_GO_DEV}/{subject}@{version}" if version else f"{PKG_GO_DEV}/{subject}"
        response = self._get(url, what=f"Go package {subject}")
        soup = BeautifulSoup(response.text, "html.parser")
        return {
            "url": url,
            "synopsis": extract_synopsis(soup),
            "repository": extract_repository(soup),
            "license": extract_license(soup),
        }

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        synopsis = fields.get("synopsis", "")
        repository = fields.get("repository", "")
        license_name = fields.get("license", "")
        install = f"go get {subject}@{version}" if version else f"go get {subject}"
        body = (
            MarkdownBuilder()
            .heading(subject)
            .field("Version", version or "latest")
            .field("Import path", f"`{subject}`")
            .paragraph(synopsis)
            .field("Repository", repository)
            .field("License", license_name)
            .heading("Installation", 2)
            .code(install, "bash")
            .heading("Import", 2)
            .code(f'import "{subject}"', "go")
            .heading("Documentation", 2)
            .paragraph(f"For detailed documentation and examples, visit [pkg.go.dev]({fields.get('url', '')})")
            .render()
        )
        attributes = {
            key: value
            for key, value in (("synopsis", synopsis), ("repository", repository), ("license", license_name))
            if value
        }
        return ContentRecord(identifier=subject, version=version, attributes=attributes, body=body)


class GoReleaseAdapter(HttpSourceAdapter):
    """Release notes for Go toolchain versions from go.dev."""

    name = "go-release"
    namespace = "go"
    subcollection = "versions"
    label = "go.dev"

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        version = version or subject
        if version.startswith("go"):
            version = version[2:]
        if not version:
            raise ValueError("a Go version is required")
        return "go", version

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        url = f"{GO_DEV}/doc/go{version}"
        response = self._get(url, what=f"Go {version} release notes")
        notes, found = extract_release_notes(BeautifulSoup(response.text, "html.parser"))
        return {"url": url, "notes": notes, "article_found": found}

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        url = fields.get("url", f"{GO_DEV}/doc/go{version}")
        builder = (
            MarkdownBuilder()
            .heading(f"Go {version} Release Notes")
            .paragraph(f"Official release notes: [go.dev/doc/go{version}]({url})")
        )
        if fields.get("article_found"):
            builder.raw(fields.get("notes", ""))
        else:
            builder.heading("Overview", 2).paragraph(
                f"Go {version} introduces new features and improvements. "
                f"Visit the [official release notes]({url}) for complete details."
            )
        return ContentRecord(
            identifier=subject,
            version=version,
            attributes={"releaseURL": url},
            body=builder.render(),
        )


class GoStdlibExporter(HttpSourceAdapter):
    """Write the Go standard library as a searchable corpus collection.

    The layout produced is ``<output>/go/metadata.json`` plus one
    ``<output>/go/topics/<package>.json`` file per package.
    """

    label = "pkg.go.dev"

    def __init__(
        self,
        client: httpx.Client,
        *,
        limit: int = 100,
        delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(client)
        self.limit = limit
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._logger = get_logger("go.export")

    def list_packages(self) -> list[str]:
        response = self._get(f"{PKG_GO_DEV}/std", what="standard library index")
        soup = BeautifulSoup(response.text, "html.parser")
        seen: dict[str, None] = {}
        for anchor in soup.find_all("a", href=True):
            match = _STDLIB_HREF.match(str(anchor["href"]))
            if match:
                seen.setdefault(match.group(1), None)
        return list(seen)

    def select_packages(self, packages: Sequence[str]) -> list[str]:
        available = set(packages)
        selected = [name for name in _PRIORITY_PACKAGES if name in available]
        chosen = set(selected)
        for name in packages:
            if len(selected) >= self.limit:
                break
            if name not in chosen and "internal" not in name:
                selected.append(name)
                chosen.add(name)
        return selected[: self.limit]

    def package_topic(self, import_path: str) -> dict[str, Any]:
        response = self._get(f"{PKG_GO_DEV}/{import_path}", what=f"package {import_path}")
        synopsis = extract_synopsis(BeautifulSoup(response.text, "html.parser"))
        base_name = import_path.rsplit("/", 1)[-1]
        content = (
            MarkdownBuilder()
            .heading(f"Package {import_path}")
            .paragraph(f"Import path: `{import_path}`")
            .paragraph(synopsis)
            .heading("Overview", 2)
            .paragraph(
                f"The `{base_name}` package provides functionality as documented at "
                f"[pkg.go.dev/{import_path}]({PKG_GO_DEV}/{import_path})."
            )
            .heading("Import", 2)
            .code(f'import "{import_path}"', "go")
            .heading("Documentation", 2)
            .paragraph("For detailed documentation, examples, and API reference, visit:")
            .bullets(
                [
                    f"[pkg.go.dev/{import_path}]({PKG_GO_DEV}/{import_path})",
                    f"[Go Standard Library Documentation](https://golang.org/pkg/{import_path}/)",
                ]
            )
            .render()
        )
        keywords = list(dict.fromkeys([base_name, import_path, "standard library", "stdlib", "go", *import_path.split("/")]))
        return {
            "id": import_path.replace("/", "_"),
            "title": f"Go Package: {import_path}",
            "description": synopsis,
            "keywords": keywords,
            "content": content,
        }

    def export(self, output: Path) -> int:
        """Fetch and write the collection; returns the number of topics written."""

        collection = Path(output) / "go"
        topics_dir = collection / "topics"
        topics_dir.mkdir(parents=True, exist_ok=True)
        _write_json(
            collection / "metadata.json",
            {
                "name": "go",
                "displayName": "Go",
                "description": "Go standard library documentation (fetched from pkg.go.dev)",
            },
        )

        packages = self.select_packages(self.list_packages())
        self._logger.info("go.export.started", packages=len(packages), output=str(collection))
        written = 0
        for index, import_path in enumerate(packages):
            if index and self.delay_seconds:
                self._sleep(self.delay_seconds)
            try:
                topic = self.package_topic(import_path)
            except FetchError as exc:
                self._logger.warning("go.export.package_failed", package=import_path, detail=str(exc))
                continue
            _write_json(topics_dir / f"{topic['id']}.json", topic)
            written += 1
        self._logger.info("go.export.finished", written=written)
        return written


def _write_json(path: Path, payload: Mapping[str, Any]) -> None:
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


__all__ = [
    "GoLibraryAdapter",
    "GoReleaseAdapter",
    "GoStdlibExporter",
    "escape_module_path",
    "extract_license",
    "extract_release_notes",
    "extract_repository",
    "extract_synopsis",
]
