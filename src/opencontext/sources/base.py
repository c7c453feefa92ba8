"""Shared HTTP plumbing for source adapters."""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from opencontext.fetching.errors import NotFoundError, TransientSourceError
from opencontext.fetching.versions import VersionResolver
from opencontext.models import ContentRecord

DEFAULT_USER_AGENT = "open-context-mcp-server"
DEFAULT_TIMEOUT_SECONDS = 30.0


def build_http_client(
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create the client shared by every adapter."""

    return httpx.Client(
        timeout=httpx.Timeout(timeout_seconds),
        headers={"User-Agent": user_agent},
        follow_redirects=True,
        transport=transport,
    )


def string_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


class HttpSourceAdapter:
    """Base class mapping HTTP outcomes onto fetch error kinds.

    Subclasses set ``name``, ``namespace``, ``subcollection`` and implement
    ``retrieve`` and ``format``.
    """

    name: str = ""
    namespace: str = ""
    subcollection: str = ""
    label: str = ""
    resolver: VersionResolver | None = None

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        return subject, version

    def _get(self, url: str, *, what: str, headers: Mapping[str, str] | None = None) -> httpx.Response:
        try:
            response = self._client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientSourceError(f"timed out fetching {what} from {self.label or url}") from exc
        except httpx.HTTPError as exc:
            raise TransientSourceError(f"failed to fetch {what}: {exc}") from exc
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"{what} not found")
        if not response.is_success:
            raise TransientSourceError(
                f"{self.label or 'upstream'} returned status {response.status_code} for {what}"
            )
        return response

    def _get_json(self, url: str, *, what: str, headers: Mapping[str, str] | None = None) -> Any:
        response = self._get(url, what=what, headers=headers)
        try:
            return response.json()
        except ValueError as exc:
            raise TransientSourceError(f"malformed response for {what}: {exc}") from exc

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:  # pragma: no cover - abstract
        raise NotImplementedError

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:  # pragma: no cover
        raise NotImplementedError


class MarkdownBuilder:
    """Small accumulator for the markdown bodies adapters produce."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def heading(self, text: str, level: int = 1) -> "MarkdownBuilder":
        self._parts.append(f"{'#' * level} {text}\n\n")
        return self

    def field(self, label: str, value: object) -> "MarkdownBuilder":
        if value not in (None, "", 0):
            self._parts.append(f"**{label}:** {value}\n\n")
        return self

    def paragraph(self, text: str) -> "MarkdownBuilder":
        if text:
            self._parts.append(f"{text}\n\n")
        return self

    def code(self, text: str, language: str = "") -> "MarkdownBuilder":
        self._parts.append(f"```{language}\n{text}\n```\n\n")
        return self

    def bullets(self, items: list[str]) -> "MarkdownBuilder":
        if items:
            self._parts.append("".join(f"- {item}\n" for item in items) + "\n")
        return self

    def raw(self, text: str) -> "MarkdownBuilder":
        self._parts.append(text)
        return self

    def render(self) -> str:
        return "".join(self._parts).rstrip("\n") + "\n"


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "HttpSourceAdapter",
    "MarkdownBuilder",
    "build_http_client",
    "string_field",
]
