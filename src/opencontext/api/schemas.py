"""Pydantic models for the JSON-RPC envelope and tool arguments."""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "open-context"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
TOOL_ERROR = -32000


class JsonRpcRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[int, str]] = None
    method: str = Field(..., min_length=1)
    params: Optional[dict[str, Any]] = None


class JsonRpcError(BaseModel):
    code: int
    message: str


class JsonRpcResponse(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[int, str]] = None
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump()
        else:
            payload["result"] = self.result
        return payload


class ToolCallParams(BaseModel):
    name: str = Field(..., min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class PromptGetParams(BaseModel):
    name: str = Field(..., min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SearchDocsArguments(ToolArguments):
    query: str = Field(..., min_length=1, description="Search query (e.g., 'http server', 'goroutines', 'json')")
    language: Optional[str] = Field(default=None, description="Optional language filter (e.g., 'go', 'typescript')")


class GetDocsArguments(ToolArguments):
    id: Optional[str] = Field(default=None, description="Document ID (e.g., 'go-http-server')")
    language: Optional[str] = Field(default=None, description="Optional language filter")
    topic: Optional[str] = Field(default=None, description="Topic title or id to look up")


class ListDocsArguments(ToolArguments):
    pass


class GoInfoArguments(ToolArguments):
    type: Literal["version", "library"] = Field(..., description="Type of information to fetch")
    version: Optional[str] = Field(default=None, description="Go version (e.g., '1.21') or library version")
    import_path: Optional[str] = Field(
        default=None,
        alias="importPath",
        description="Library import path (e.g., 'github.com/gin-gonic/gin')",
    )

    @model_validator(mode="after")
    def _require_subject(self) -> "GoInfoArguments":
        if self.type == "version" and not self.version:
            raise ValueError("version is required when type is 'version'")
        if self.type == "library" and not self.import_path:
            raise ValueError("importPath is required when type is 'library'")
        return self


class NpmInfoArguments(ToolArguments):
    package_name: str = Field(
        ...,
        min_length=1,
        alias="packageName",
        description="npm package name (e.g., 'express', '@types/node')",
    )
    version: Optional[str] = Field(default=None, description="Package version; defaults to latest")


class PythonInfoArguments(ToolArguments):
    package_name: str = Field(..., min_length=1, alias="packageName", description="PyPI package name (e.g., 'requests')")
    version: Optional[str] = Field(default=None, description="Package version; defaults to latest")


class RustInfoArguments(ToolArguments):
    crate_name: str = Field(..., min_length=1, alias="crateName", description="Crate name (e.g., 'serde')")
    version: Optional[str] = Field(default=None, description="Crate version; defaults to latest")


class NodeInfoArguments(ToolArguments):
    version: str = Field(..., min_length=1, description="Node.js version (e.g., '20.10.0' or 'v20.10.0')")


class DockerInfoArguments(ToolArguments):
    image: str = Field(..., min_length=1, description="Image name (e.g., 'nginx', 'bitnami/redis')")
    tag: Optional[str] = Field(default=None, description="Image tag; defaults to latest")


class ReleaseInfoArguments(ToolArguments):
    version: str = Field(..., min_length=1, description="Release version (e.g., '1.6.0')")


__all__ = [
    "DockerInfoArguments",
    "GetDocsArguments",
    "GoInfoArguments",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "ListDocsArguments",
    "METHOD_NOT_FOUND",
    "NodeInfoArguments",
    "NpmInfoArguments",
    "PARSE_ERROR",
    "PROTOCOL_VERSION",
    "PromptGetParams",
    "PythonInfoArguments",
    "ReleaseInfoArguments",
    "RustInfoArguments",
    "SERVER_NAME",
    "SearchDocsArguments",
    "TOOL_ERROR",
    "ToolArguments",
    "ToolCallParams",
]
