"""Text format for cached content records.

A record is written as a delimited header followed by the body::

    ---
    identifier: "github.com/gin-gonic/gin"
    version: "v1.10.0"
    synopsis: "Package gin implements a HTTP web framework"
    ---
    # github.com/gin-gonic/gin
    ...

Header values are always double-quoted with every line break escaped, so the
delimiter line can never appear inside the header. The body is stored verbatim.
"""

from __future__ import annotations

import re

import yaml

from opencontext.models import ContentRecord

DELIMITER = "---"
RESERVED_KEYS = ("identifier", "version")

_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")
_SIMPLE_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


class CacheReadError(RuntimeError):
    """Raised when a cached record exists but cannot be read."""


class CacheCorruptError(CacheReadError):
    """Raised when a cached record is malformed."""


class CacheFormatError(CacheCorruptError):
    """Raised when text does not follow the record layout."""


def _needs_escape(char: str) -> bool:
    code = ord(char)
    return (
        code < 0x20
        or 0x7F <= code <= 0x9F
        or 0xD800 <= code <= 0xDFFF
        or code in (0x2028, 0x2029, 0xFEFF, 0xFFFE, 0xFFFF)
    )


def _quote(value: str) -> str:
    parts: list[str] = []
    for char in value:
        if char in _SIMPLE_ESCAPES:
            parts.append(_SIMPLE_ESCAPES[char])
        elif _needs_escape(char):
            code = ord(char)
            parts.append(f"\\u{code:04x}" if code <= 0xFFFF else f"\\U{code:08x}")
        else:
            parts.append(char)
    return '"' + "".join(parts) + '"'


def encode(record: ContentRecord) -> str:
    """Serialize a record; attribute order is preserved."""

    fields: list[tuple[str, str]] = [("identifier", record.identifier), ("version", record.version)]
    for key, value in record.attributes.items():
        if key in RESERVED_KEYS:
            raise ValueError(f"attribute name {key!r} is reserved")
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"invalid attribute name: {key!r}")
        fields.append((key, str(value)))
    header = "".join(f"{key}: {_quote(value)}\n" for key, value in fields)
    return f"{DELIMITER}\n{header}{DELIMITER}\n{record.body}"


def _delimiter_spans(text: str) -> list[tuple[int, int]]:
    """Return (line start, next line start) for the first two delimiter lines."""

    spans: list[tuple[int, int]] = []
    start = 0
    while len(spans) < 2:
        newline = text.find("\n", start)
        line_end = len(text) if newline == -1 else newline
        if text[start:line_end].rstrip("\r") == DELIMITER:
            spans.append((start, line_end if newline == -1 else newline + 1))
        if newline == -1:
            break
        start = newline + 1
    return spans


def _header_value(key: str, value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return ", ".join(value)
    raise CacheFormatError(f"header field {key!r} is not a string")


def decode_header(header: str) -> dict[str, str]:
    try:
        parsed = yaml.load(header, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise CacheFormatError(f"unparseable header: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise CacheFormatError("header is not a mapping")
    return {str(key): _header_value(str(key), value) for key, value in parsed.items()}


def decode(text: str) -> ContentRecord:
    """Parse text produced by :func:`encode` back into a record."""

    spans = _delimiter_spans(text)
    if len(spans) < 2:
        raise CacheFormatError("missing header delimiters")
    (first_start, first_end), (second_start, second_end) = spans
    if text[:first_start].strip():
        raise CacheFormatError("unexpected content before header")

    fields = decode_header(text[first_end:second_start])
    identifier = fields.pop("identifier", "")
    version = fields.pop("version", "")
    return ContentRecord(
        identifier=identifier,
        version=version,
        attributes=fields,
        body=text[second_end:],
    )


__all__ = [
    "CacheCorruptError",
    "CacheFormatError",
    "CacheReadError",
    "DELIMITER",
    "decode",
    "decode_header",
    "encode",
]
