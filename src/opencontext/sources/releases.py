"""Tool and runtime releases: Node.js and products published as GitHub releases."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

import httpx

from opencontext.fetching.errors import NotFoundError
from opencontext.models import ContentRecord
from opencontext.sources.base import HttpSourceAdapter, MarkdownBuilder, string_field

GITHUB_API = "https://api.github.com"


@dataclass(frozen=True)
class InstallStep:
    """One installation snippet; ``{version}`` and ``{bare}`` are substituted."""

    heading: str
    code: str
    language: str = "bash"


@dataclass(frozen=True)
class ReleaseProduct:
    """A product whose versions are GitHub release tags."""

    key: str
    display_name: str
    repository: str
    tag_prefix: str = "v"
    install: Sequence[InstallStep] = ()
    doc_links: Sequence[tuple[str, str]] = ()
    notes: Sequence[str] = ()

    def tag_for(self, version: str) -> str:
        return version if version.startswith(self.tag_prefix) else f"{self.tag_prefix}{version}"


PRODUCTS: dict[str, ReleaseProduct] = {
    product.key: product
    for product in (
        ReleaseProduct(
            key="terraform",
            display_name="Terraform",
            repository="hashicorp/terraform",
            install=(
                InstallStep("Using tfenv (version manager)", "tfenv install {bare}\ntfenv use {bare}"),
                InstallStep("Using Homebrew (macOS)", "brew install terraform@{bare}"),
                InstallStep("Using Chocolatey (Windows)", "choco install terraform --version={bare}", "powershell"),
            ),
            notes=("Download from [releases.hashicorp.com](https://releases.hashicorp.com/terraform/{bare}/)",),
            doc_links=(
                ("Terraform Documentation", "https://developer.hashicorp.com/terraform/docs"),
                ("Terraform Registry", "https://registry.terraform.io/"),
                ("Terraform GitHub Repository", "https://github.com/hashicorp/terraform"),
            ),
        ),
        ReleaseProduct(
            key="kubernetes",
            display_name="Kubernetes",
            repository="kubernetes/kubernetes",
            install=(
                InstallStep(
                    "Install kubectl (Linux/macOS)",
                    'curl -LO "https://dl.k8s.io/release/{version}/bin/linux/amd64/kubectl"\n'
                    "chmod +x kubectl\nsudo mv kubectl /usr/local/bin/",
                ),
                InstallStep("Using Homebrew (macOS)", "brew install kubectl@{bare}"),
                InstallStep("Using Chocolatey (Windows)", "choco install kubernetes-cli", "powershell"),
            ),
            doc_links=(
                ("Kubernetes Documentation", "https://kubernetes.io/docs/"),
                ("Kubernetes API Reference", "https://kubernetes.io/docs/reference/"),
                ("Kubernetes Release Notes", "https://kubernetes.io/releases/"),
            ),
        ),
        ReleaseProduct(
            key="helm",
            display_name="Helm",
            repository="helm/helm",
            install=(
                InstallStep("Using installation script", "curl https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3 | bash"),
                InstallStep("Using Homebrew (macOS)", "brew install helm@{bare}"),
                InstallStep(
                    "From Binary Releases",
                    "wget https://get.helm.sh/helm-{version}-linux-amd64.tar.gz\n"
                    "tar -zxvf helm-{version}-linux-amd64.tar.gz\n"
                    "sudo mv linux-amd64/helm /usr/local/bin/helm",
                ),
            ),
            doc_links=(
                ("Helm Documentation", "https://helm.sh/docs/"),
                ("Helm Charts", "https://artifacthub.io/"),
                ("Helm Release Notes", "https://github.com/helm/helm/releases"),
            ),
        ),
        ReleaseProduct(
            key="jenkins",
            display_name="Jenkins",
            repository="jenkinsci/jenkins",
            tag_prefix="jenkins-",
            install=(
                InstallStep(
                    "Using Docker",
                    "docker pull jenkins/jenkins:{bare}\n"
                    "docker run -p 8080:8080 -p 50000:50000 jenkins/jenkins:{bare}",
                ),
            ),
            notes=("Download from [Jenkins Downloads](https://get.jenkins.io/war/{bare}/jenkins.war)",),
            doc_links=(
                ("Jenkins Documentation", "https://www.jenkins.io/doc/"),
                ("Jenkins Plugins", "https://plugins.jenkins.io/"),
                ("Jenkins Changelog", "https://www.jenkins.io/changelog/"),
            ),
        ),
        ReleaseProduct(
            key="typescript",
            display_name="TypeScript",
            repository="microsoft/TypeScript",
            install=(InstallStep("Using npm", "npm install --save-dev typescript@{bare}"),),
            doc_links=(
                ("TypeScript Handbook", "https://www.typescriptlang.org/docs/handbook/intro.html"),
                ("TypeScript Release Notes", "https://www.typescriptlang.org/docs/handbook/release-notes/overview.html"),
            ),
        ),
        ReleaseProduct(
            key="react",
            display_name="React",
            repository="facebook/react",
            install=(InstallStep("Using npm", "npm install react@{bare} react-dom@{bare}"),),
            doc_links=(
                ("React Documentation", "https://react.dev/"),
                ("React Blog", "https://react.dev/blog"),
            ),
        ),
        ReleaseProduct(
            key="nextjs",
            display_name="Next.js",
            repository="vercel/next.js",
            install=(
                InstallStep("Using npm", "npm install next@{bare} react react-dom"),
                InstallStep("Create a new app", "npx create-next-app@{bare}"),
            ),
            doc_links=(("Next.js Documentation", "https://nextjs.org/docs"),),
        ),
        ReleaseProduct(
            key="ansible",
            display_name="Ansible",
            repository="ansible/ansible",
            install=(InstallStep("Using pip", "pip install ansible-core=={bare}"),),
            doc_links=(
                ("Ansible Documentation", "https://docs.ansible.com/"),
                ("Ansible Galaxy", "https://galaxy.ansible.com/"),
            ),
        ),
    )
}


def _release_date(published_at: str) -> str:
    if not published_at:
        return ""
    try:
        return datetime.fromisoformat(published_at.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return published_at


class GitHubReleaseAdapter(HttpSourceAdapter):
    """Release notes for one product, read from ``/repos/<repo>/releases/tags/<tag>``."""

    namespace = ""
    subcollection = "versions"
    label = "api.github.com"

    def __init__(self, client: httpx.Client, product: ReleaseProduct, *, token: str | None = None) -> None:
        super().__init__(client)
        self.product = product
        self.name = product.key
        self.namespace = product.key
        self._headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        version = version or subject
        if not version or version == self.product.key:
            raise ValueError(f"a {self.product.display_name} version is required")
        return self.product.key, version

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        tag = self.product.tag_for(version)
        try:
            data = self._get_json(
                f"{GITHUB_API}/repos/{self.product.repository}/releases/tags/{tag}",
                what=f"{self.product.display_name} version {version}",
                headers=self._headers,
            )
        except NotFoundError as exc:
            raise NotFoundError(f"{self.product.display_name} version {version} not found") from exc
        if not isinstance(data, dict):
            data = {}
        return {
            "tag": tag,
            "release_url": string_field(data, "html_url"),
            "release_date": _release_date(string_field(data, "published_at")),
            "notes": string_field(data, "body"),
        }

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        product = self.product
        tag = fields.get("tag") or product.tag_for(version)
        bare = tag[len(product.tag_prefix):] if tag.startswith(product.tag_prefix) else tag
        release_url = fields.get("release_url", "")
        builder = (
            MarkdownBuilder()
            .heading(f"{product.display_name} {version}")
            .field("Release Date", fields.get("release_date"))
            .field("Release Notes", f"[{version}]({release_url})" if release_url else "")
            .heading("Installation", 2)
        )
        for step in product.install:
            builder.heading(step.heading, 3).code(step.code.format(version=tag, bare=bare), step.language)
        for note in product.notes:
            builder.paragraph(note.format(version=tag, bare=bare))
        if fields.get("notes"):
            builder.heading("Release Notes", 2).paragraph(fields["notes"].strip())
        links = [f"[{title}]({url})" for title, url in product.doc_links]
        links.append(f"[{product.display_name} GitHub Releases](https://github.com/{product.repository}/releases)")
        builder.heading("Documentation", 2).paragraph("For detailed documentation, visit:").bullets(links)

        attributes = {"releaseDate": fields.get("release_date", ""), "releaseURL": release_url}
        return ContentRecord(
            identifier=subject,
            version=version,
            attributes={key: value for key, value in attributes.items() if value},
            body=builder.render(),
        )


class NodeReleaseAdapter(HttpSourceAdapter):
    """Node.js releases from the nodejs.org distribution index."""

    name = "node"
    namespace = "node"
    subcollection = "versions"
    label = "nodejs.org"

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        version = version or subject
        if not version or version == "node":
            raise ValueError("a Node.js version is required")
        if not version.startswith("v"):
            version = f"v{version}"
        return "node", version

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        releases = self._get_json("https://nodejs.org/dist/index.json", what="Node.js release index")
        if isinstance(releases, list):
            for release in releases:
                if isinstance(release, dict) and release.get("version") == version:
                    return release
        raise NotFoundError(f"Node.js version {version} not found")

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        lts = fields.get("lts")
        if lts is True:
            lts = "Yes"
        elif not isinstance(lts, str):
            lts = ""
        major = version.lstrip("v").split(".", 1)[0]
        release_date = string_field(fields, "date")
        body = (
            MarkdownBuilder()
            .heading(f"Node.js {version}")
            .field("Release Date", release_date)
            .field("LTS", lts)
            .field("Modules Version", string_field(fields, "modules"))
            .field("V8 Version", string_field(fields, "v8"))
            .field("npm Version", string_field(fields, "npm"))
            .heading("Installation", 2)
            .heading("Using nvm", 3)
            .code(f"nvm install {version}", "bash")
            .heading("Download", 3)
            .paragraph(f"Download from [nodejs.org](https://nodejs.org/dist/{version}/)")
            .heading("Documentation", 2)
            .paragraph(
                f"For detailed documentation, visit [Node.js v{major} Documentation]"
                f"(https://nodejs.org/docs/latest-v{major}.x/api/)"
            )
            .render()
        )
        attributes = {"releaseDate": release_date, "lts": lts}
        return ContentRecord(
            identifier=subject,
            version=version,
            attributes={key: value for key, value in attributes.items() if value},
            body=body,
        )


__all__ = ["GitHubReleaseAdapter", "InstallStep", "NodeReleaseAdapter", "PRODUCTS", "ReleaseProduct"]
