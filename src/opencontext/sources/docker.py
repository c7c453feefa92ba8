"""Docker Hub image tags."""

from __future__ import annotations

from typing import Any, Mapping

from opencontext.fetching.errors import FetchError, NotFoundError
from opencontext.metrics.observability import get_logger
from opencontext.models import ContentRecord
from opencontext.sources.base import HttpSourceAdapter, MarkdownBuilder, string_field

DOCKER_HUB_API = "https://hub.docker.com/v2/repositories"
RECENT_TAG_LIMIT = 20
SHOWN_TAG_LIMIT = 10


def parse_image_name(image: str) -> tuple[str, str]:
    """Split ``owner/repo``; single-segment names are official ``library`` images."""

    parts = image.split("/")
    if len(parts) == 1:
        return "library", parts[0]
    return parts[0], parts[1]


class DockerHubAdapter(HttpSourceAdapter):
    name = "docker"
    namespace = "docker"
    subcollection = "images"
    label = "Docker Hub"

    def normalize(self, subject: str, version: str) -> tuple[str, str]:
        image, _, tag = subject.partition(":")
        return image, version or tag or "latest"

    def retrieve(self, subject: str, version: str) -> Mapping[str, Any]:
        owner, repository = parse_image_name(subject)
        base = f"{DOCKER_HUB_API}/{owner}/{repository}/tags"
        try:
            tag = self._get_json(f"{base}/{version}", what=f"Docker image {subject}:{version}")
        except NotFoundError as exc:
            raise NotFoundError(f"docker image tag {owner}/{repository}:{version} not found") from exc
        if not isinstance(tag, dict):
            tag = {}

        recent: list[str] = []
        try:
            listing = self._get_json(f"{base}?page_size={RECENT_TAG_LIMIT}", what=f"tags of {subject}")
        except FetchError as exc:
            get_logger("docker").warning("docker.tags_unavailable", image=subject, detail=str(exc))
        else:
            results = listing.get("results") if isinstance(listing, dict) else None
            if isinstance(results, list):
                recent = sorted(
                    (string_field(item, "name") for item in results if isinstance(item, dict)),
                    reverse=True,
                )

        platforms = []
        for image in tag.get("images") or ():
            if isinstance(image, dict):
                platform = f"{string_field(image, 'os')}/{string_field(image, 'architecture')}"
                if platform not in platforms:
                    platforms.append(platform)
        return {
            "digest": string_field(tag, "digest"),
            "last_updated": string_field(tag, "last_updated")[:10],
            "full_size": tag.get("full_size") if isinstance(tag.get("full_size"), int) else 0,
            "platforms": platforms,
            "tags": [name for name in recent if name],
        }

    def format(self, subject: str, version: str, fields: Mapping[str, Any]) -> ContentRecord:
        full_image = f"{subject}:{version}"
        size = fields.get("full_size") or 0
        builder = (
            MarkdownBuilder()
            .heading(f"Docker Image: {full_image}")
            .heading("Image Information", 2)
            .field("Tag", version)
            .field("Last Updated", fields.get("last_updated"))
            .field("Size", f"{size / (1024 * 1024):.2f} MB" if size else "")
            .field("Digest", f"`{fields['digest']}`" if fields.get("digest") else "")
        )
        if fields.get("platforms"):
            builder.heading("Available Architectures", 2).bullets(list(fields["platforms"]))
        builder.heading("Usage", 2)
        builder.heading("Pull the image", 3).code(f"docker pull {full_image}", "bash")
        builder.heading("Run a container", 3).code(f"docker run -it {full_image}", "bash")
        builder.heading("Use in Dockerfile", 3).code(f"FROM {full_image}", "dockerfile")

        tags = list(fields.get("tags") or ())
        if tags:
            builder.heading("Recent Tags", 2).paragraph(
                f"For image `{subject}`, the following tags are available:"
            )
            builder.bullets([f"`{name}`" for name in tags[:SHOWN_TAG_LIMIT]])
            if len(tags) > SHOWN_TAG_LIMIT:
                builder.paragraph(f"...and {len(tags) - SHOWN_TAG_LIMIT} more tags")
        builder.heading("Documentation", 2).bullets(
            [
                f"[Docker Hub Repository](https://hub.docker.com/r/{subject})",
                "[Docker Documentation](https://docs.docker.com/)",
            ]
        )
        attributes = {
            "fullImage": full_image,
            "digest": fields.get("digest", ""),
            "lastUpdated": fields.get("last_updated", ""),
        }
        return ContentRecord(
            identifier=subject,
            version=version,
            attributes={key: value for key, value in attributes.items() if value},
            body=builder.render(),
        )


__all__ = ["DockerHubAdapter", "parse_image_name"]
