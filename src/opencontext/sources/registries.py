"""Package registries: npm, PyPI and crates.io."""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import quote

from opencontext.models import ContentRecord
from opencontext.sources.base import HttpSourceAdapter, MarkdownBuilder, string_field

_PYPI_REPOSITORY_KEYS = ("Repository", "Source", "Source Code", "GitHub", "GitLab")


def _record(subject: str, version: str, attributes: Mapping[str, object], body: str) -> ContentRecord:
    kept = {key: str(value) for key, value in attributes.items() if value not in (None, "", 0)}
    return ContentRecord(identifier=subject, version=version, attributes=kept, body=body)


class NpmAdapter(HttpSourceAdapter):
    name = "npm"
    namespace = "npm"
    subcollection = "packages"
    label = "registry.npmjs.org"

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        return subject, version or "latest"

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        # scoped names keep their '@' but encode the slash
        url = f"https://registry.npmjs.org/{quote(subject, safe='@')}/{quote(version, safe='')}"
        data = self._get_json(url, what=f"npm package {subject}")
        if not isinstance(data, dict):
            return {}

        repository = ""
        repo = data.get("repository")
        if isinstance(repo, dict):
            repository = string_field(repo, "url")
        elif isinstance(repo, str):
            repository = repo
        repository = repository.removeprefix("git+").removesuffix(".git")

        author = data.get("author")
        if isinstance(author, dict):
            author = string_field(author, "name")
        return {
            "name": string_field(data, "name") or subject,
            "version": string_field(data, "version"),
            "description": string_field(data, "description"),
            "homepage": string_field(data, "homepage"),
            "repository": repository,
            "license": string_field(data, "license"),
            "author": author if isinstance(author, str) else "",
        }

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        name = fields.get("name") or subject
        resolved = fields.get("version") or version
        pinned = f"@{resolved}" if resolved else ""
        body = (
            MarkdownBuilder()
            .heading(name)
            .field("Description", fields.get("description"))
            .field("Version", resolved)
            .field("Author", fields.get("author"))
            .field("License", fields.get("license"))
            .field("Homepage", fields.get("homepage"))
            .field("Repository", fields.get("repository"))
            .heading("Installation", 2)
            .code(f"npm install {name}{pinned}", "bash")
            .heading("Documentation", 2)
            .paragraph(
                f"For detailed documentation, visit [npmjs.com](https://www.npmjs.com/package/{name}"
                + (f"/v/{resolved}" if resolved else "")
                + ")"
            )
            .render()
        )
        attributes = {key: fields.get(key) for key in ("description", "homepage", "repository", "license", "author")}
        return _record(subject, resolved, attributes, body)


class PyPIAdapter(HttpSourceAdapter):
    name = "python"
    namespace = "python"
    subcollection = "packages"
    label = "pypi.org"

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        base = f"https://pypi.org/pypi/{quote(subject, safe='')}"
        url = f"{base}/{quote(version, safe='')}/json" if version else f"{base}/json"
        data = self._get_json(url, what=f"Python package {subject}")
        info = data.get("info") if isinstance(data, dict) else None
        if not isinstance(info, dict):
            return {"name": subject}

        repository = ""
        project_urls = info.get("project_urls")
        if isinstance(project_urls, dict):
            for key in _PYPI_REPOSITORY_KEYS:
                candidate = project_urls.get(key)
                if isinstance(candidate, str) and candidate:
                    repository = candidate
                    break
        return {
            "name": string_field(info, "name") or subject,
            "version": string_field(info, "version"),
            "summary": string_field(info, "summary"),
            "homepage": string_field(info, "home_page"),
            "license": string_field(info, "license"),
            "author": string_field(info, "author"),
            "repository": repository,
        }

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        name = fields.get("name") or subject
        resolved = fields.get("version") or version
        pinned = f"=={resolved}" if resolved else ""
        body = (
            MarkdownBuilder()
            .heading(name)
            .field("Summary", fields.get("summary"))
            .field("Version", resolved)
            .field("Author", fields.get("author"))
            .field("License", fields.get("license"))
            .field("Homepage", fields.get("homepage"))
            .field("Repository", fields.get("repository"))
            .heading("Installation", 2)
            .code(f"pip install {name}{pinned}", "bash")
            .heading("Using requirements.txt", 3)
            .code(f"{name}{pinned}")
            .heading("Using Poetry", 3)
            .code(f"poetry add {name}" + (f"@{resolved}" if resolved else ""), "bash")
            .heading("Documentation", 2)
            .paragraph(f"For detailed documentation, visit [PyPI](https://pypi.org/project/{name}/)")
            .render()
        )
        attributes = {key: fields.get(key) for key in ("summary", "homepage", "repository", "license", "author")}
        if not version and resolved:
            attributes["latest"] = resolved
        return _record(subject, version, attributes, body)


class CratesAdapter(HttpSourceAdapter):
    name = "rust"
    namespace = "rust"
    subcollection = "crates"
    label = "crates.io"

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        base = f"https://crates.io/api/v1/crates/{quote(subject, safe='')}"
        url = f"{base}/{quote(version, safe='')}" if version else base
        data = self._get_json(url, what=f"Rust crate {subject}", headers={"Accept": "application/json"})
        if not isinstance(data, dict):
            return {"name": subject}

        fields: dict[str, Any] = {"name": subject}
        crate = data.get("crate")
        if isinstance(crate, dict):
            fields.update(
                name=string_field(crate, "name") or subject,
                description=string_field(crate, "description"),
                homepage=string_field(crate, "homepage"),
                repository=string_field(crate, "repository"),
                documentation=string_field(crate, "documentation"),
            )
            downloads = crate.get("downloads")
            if isinstance(downloads, (int, float)):
                fields["downloads"] = int(downloads)

        version_data = data.get("version")
        if not isinstance(version_data, dict):
            versions = data.get("versions")
            version_data = versions[0] if isinstance(versions, list) and versions else None
        if isinstance(version_data, dict):
            fields["version"] = string_field(version_data, "num")
            fields["license"] = string_field(version_data, "license")
        return fields

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        name = fields.get("name") or subject
        resolved = fields.get("version") or version
        documentation = fields.get("documentation") or f"https://docs.rs/{name}"
        links = [f"[Crates.io](https://crates.io/crates/{name})", f"[Documentation]({documentation})"]
        if fields.get("repository"):
            links.append(f"[Repository]({fields['repository']})")
        dependency = f'{name} = "{resolved}"' if resolved else name
        body = (
            MarkdownBuilder()
            .heading(name)
            .field("Description", fields.get("description"))
            .field("Version", resolved)
            .field("License", fields.get("license"))
            .field("Downloads", fields.get("downloads"))
            .field("Homepage", fields.get("homepage"))
            .field("Repository", fields.get("repository"))
            .field("Documentation", fields.get("documentation"))
            .heading("Installation", 2)
            .heading("Using Cargo", 3)
            .code(f"cargo add {name}" + (f"@{resolved}" if resolved else ""), "bash")
            .heading("Adding to Cargo.toml", 3)
            .code(f"[dependencies]\n{dependency}", "toml")
            .heading("Links", 2)
            .bullets(links)
            .render()
        )
        attributes = {
            key: fields.get(key)
            for key in ("description", "homepage", "repository", "documentation", "license", "downloads")
        }
        if not version and resolved:
            attributes["latest"] = resolved
        return _record(subject, version, attributes, body)


__all__ = ["CratesAdapter", "NpmAdapter", "PyPIAdapter"]
