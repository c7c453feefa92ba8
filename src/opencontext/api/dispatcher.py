"""JSON-RPC dispatcher for the MCP methods and tools."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ValidationError

from opencontext.api.schemas import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROTOCOL_VERSION,
    SERVER_NAME,
    TOOL_ERROR,
    DockerInfoArguments,
    GetDocsArguments,
    GoInfoArguments,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    ListDocsArguments,
    NodeInfoArguments,
    NpmInfoArguments,
    PromptGetParams,
    PythonInfoArguments,
    ReleaseInfoArguments,
    RustInfoArguments,
    SearchDocsArguments,
    ToolCallParams,
)
from opencontext.cache.codec import CacheReadError
from opencontext.fetching import FetchError, FetchOrchestrator
from opencontext.metrics.observability import get_logger
from opencontext.search import DocumentLookupError, SearchEngine
from opencontext.sources.releases import PRODUCTS

USE_DOCS_PROMPT = "use-docs"


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    arguments: type[BaseModel]
    handler: Callable[[Any], str]
    source: str | None = None

    def describe(self) -> dict[str, Any]:
        schema = self.arguments.model_json_schema(by_alias=True)
        input_schema: dict[str, Any] = {"type": "object", "properties": schema.get("properties", {})}
        if schema.get("required"):
            input_schema["required"] = schema["required"]
        return {"name": self.name, "description": self.description, "inputSchema": input_schema}


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return JsonRpcResponse(id=request_id, error=JsonRpcError(code=code, message=message)).to_payload()


def _result(request_id: Any, result: Any) -> dict[str, Any]:
    return JsonRpcResponse(id=request_id, result=result).to_payload()


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "__root__")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


class McpDispatcher:
    """Routes JSON-RPC requests to the search engine and the fetch orchestrator."""

    def __init__(self, search: SearchEngine, orchestrator: FetchOrchestrator, *, server_version: str = "0.0.0") -> None:
        self.search = search
        self.orchestrator = orchestrator
        self.server_version = server_version
        self._logger = get_logger("dispatcher")
        self._methods: dict[str, Callable[[JsonRpcRequest], dict[str, Any]]] = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
        }
        self._tools: dict[str, Tool] = {tool.name: tool for tool in self._build_tools()}

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def _build_tools(self) -> list[Tool]:
        tools = [
            Tool(
                "search_docs",
                "Search for documentation topics across all available documentation sources",
                SearchDocsArguments,
                self._search_docs,
            ),
            Tool(
                "get_docs",
                "Get detailed documentation for a specific topic or library",
                GetDocsArguments,
                self._get_docs,
            ),
            Tool(
                "list_docs",
                "List all available documentation languages and their topics",
                ListDocsArguments,
                self._list_docs,
            ),
            Tool(
                "get_go_info",
                "Fetch and cache information about specific Go versions or Go libraries from official sources",
                GoInfoArguments,
                self._get_go_info,
                "go",
            ),
            Tool(
                "get_npm_info",
                "Fetch and cache information about npm packages from the npm registry",
                NpmInfoArguments,
                lambda args: self._fetch("npm", args.package_name, args.version),
                "npm",
            ),
            Tool(
                "get_python_info",
                "Fetch and cache information about Python packages from PyPI",
                PythonInfoArguments,
                lambda args: self._fetch("python", args.package_name, args.version),
                "python",
            ),
            Tool(
                "get_rust_info",
                "Fetch and cache information about Rust crates from crates.io",
                RustInfoArguments,
                lambda args: self._fetch("rust", args.crate_name, args.version),
                "rust",
            ),
            Tool(
                "get_node_info",
                "Fetch and cache information about Node.js versions from nodejs.org",
                NodeInfoArguments,
                lambda args: self._fetch("node", "node", args.version),
                "node",
            ),
            Tool(
                "get_docker_info",
                "Fetch and cache information about Docker images from Docker Hub",
                DockerInfoArguments,
                lambda args: self._fetch("docker", args.image, args.tag),
                "docker",
            ),
        ]
        for product in PRODUCTS.values():
            tools.append(
                Tool(
                    f"get_{product.key}_info",
                    f"Fetch and cache information about {product.display_name} versions from GitHub releases",
                    ReleaseInfoArguments,
                    lambda args, key=product.key: self._fetch(key, key, args.version),
                    product.key,
                )
            )
        # fetch tools are offered only when their source is registered
        available = set(self.orchestrator.sources)
        return [tool for tool in tools if tool.source is None or tool.source in available]

    def handle_raw(self, raw: str | bytes) -> dict[str, Any] | None:
        """Decode one serialized request and dispatch it."""

        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            self._logger.warning("rpc.parse_error", detail=str(exc))
            return _error(None, PARSE_ERROR, f"Parse error: {exc}")
        return self.handle(payload)

    def handle(self, payload: Any) -> dict[str, Any] | None:
        """Dispatch a decoded request; notifications return ``None``."""

        request_id = payload.get("id") if isinstance(payload, Mapping) else None
        if not isinstance(request_id, (int, str)):
            request_id = None
        try:
            request = JsonRpcRequest.model_validate(payload)
        except ValidationError as exc:
            return _error(request_id, INVALID_REQUEST, f"Invalid Request: {_validation_message(exc)}")

        if "id" not in request.model_fields_set and request.method.startswith("notifications/"):
            self._logger.debug("rpc.notification", method=request.method)
            return None

        method = self._methods.get(request.method)
        if method is None:
            return _error(request.id, METHOD_NOT_FOUND, f"Method not found: {request.method}")
        self._logger.info("rpc.request", method=request.method, request_id=request.id)
        try:
            return method(request)
        except Exception as exc:  # noqa: BLE001 - one failed request never stops the transport
            self._logger.exception("rpc.internal_error", method=request.method, detail=str(exc))
            return _error(request.id, INTERNAL_ERROR, f"Internal error: {exc}")

    def _initialize(self, request: JsonRpcRequest) -> dict[str, Any]:
        return _result(
            request.id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}, "prompts": {}},
                "serverInfo": {"name": SERVER_NAME, "version": self.server_version},
            },
        )

    def _tools_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        return _result(request.id, {"tools": [tool.describe() for tool in self._tools.values()]})

    def _tools_call(self, request: JsonRpcRequest) -> dict[str, Any]:
        try:
            params = ToolCallParams.model_validate(request.params or {})
        except ValidationError as exc:
            return _error(request.id, INVALID_PARAMS, f"Invalid params: {_validation_message(exc)}")

        tool = self._tools.get(params.name)
        if tool is None:
            return _error(request.id, METHOD_NOT_FOUND, f"Unknown tool: {params.name}")
        try:
            arguments = tool.arguments.model_validate(params.arguments)
        except ValidationError as exc:
            return _error(request.id, INVALID_PARAMS, f"Invalid params: {_validation_message(exc)}")

        try:
            text = tool.handler(arguments)
        except (FetchError, DocumentLookupError, CacheReadError, ValueError, OSError) as exc:
            self._logger.warning("rpc.tool_failed", tool=tool.name, detail=str(exc))
            return _error(request.id, TOOL_ERROR, str(exc))
        return _result(request.id, {"content": [{"type": "text", "text": text}]})

    def _prompts_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        prompt = {
            "name": USE_DOCS_PROMPT,
            "description": "Use open-context documentation for the current conversation",
            "arguments": [
                {
                    "name": "documentation",
                    "description": "Documentation to use (e.g., 'go', 'typescript'). Leave empty to list available docs.",
                    "required": False,
                }
            ],
        }
        return _result(request.id, {"prompts": [prompt]})

    def _prompts_get(self, request: JsonRpcRequest) -> dict[str, Any]:
        try:
            params = PromptGetParams.model_validate(request.params or {})
        except ValidationError as exc:
            return _error(request.id, INVALID_PARAMS, f"Invalid params: {_validation_message(exc)}")
        if params.name != USE_DOCS_PROMPT:
            return _error(request.id, INVALID_PARAMS, f"Unknown prompt: {params.name}")

        documentation = params.arguments.get("documentation")
        text = self._use_docs_text(documentation if isinstance(documentation, str) else "")
        return _result(
            request.id,
            {
                "description": "Use open-context documentation",
                "messages": [{"role": "user", "content": {"type": "text", "text": text}}],
            },
        )

    def _use_docs_text(self, documentation: str) -> str:
        if not documentation:
            lines = ["Available documentation:", ""]
            for collection in self.search.list_collections():
                lines.append(f"**{collection.display_name}** - {collection.description}")
                if collection.topics:
                    lines.append("  Topics: " + ", ".join(topic.title for topic in collection.topics))
                lines.append("")
            lines.append("")
            lines.append(
                "You can also use the `get_go_info` tool to fetch any Go version or library "
                "documentation on demand from official sources."
            )
            lines.append("")
            lines.append(
                "To use specific documentation, invoke this prompt with the documentation name "
                "(e.g., 'go' or 'typescript')."
            )
            return "\n".join(lines)

        lines = [
            f"I will help you using the **{documentation}** documentation available in the open-context server.",
            "",
            "I have access to the following tools:",
            "",
            "1. **search_docs** - Search for topics in the documentation",
            "2. **get_docs** - Get specific documentation content",
            "3. **list_docs** - List all available documentation",
        ]
        if documentation == "go":
            lines.extend(
                [
                    "4. **get_go_info** - Fetch Go version release notes or library information "
                    "from official sources (go.dev, pkg.go.dev)",
                    "",
                    "For Go-specific queries:",
                    '- Ask about Go versions: "What\'s new in Go 1.25?"',
                    '- Ask about Go libraries: "Tell me about github.com/gin-gonic/gin"',
                    '- Ask about standard library: "How does net/http work?"',
                ]
            )
        lines.extend(
            [
                "",
                "I will automatically use these tools to provide accurate, up-to-date information "
                "from the official documentation.",
                "",
                "What would you like to know?",
            ]
        )
        return "\n".join(lines)

    # tool handlers

    def _fetch(self, source: str, subject: str, version: str | None) -> str:
        return self.orchestrator.fetch(source, subject, version or "").body

    def _search_docs(self, args: SearchDocsArguments) -> str:
        results = self.search.search(args.query, args.language)
        payload = [
            {
                "id": result.id,
                "title": result.title,
                "description": result.description,
                "language": result.collection,
                "score": result.score,
            }
            for result in results
        ]
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def _get_docs(self, args: GetDocsArguments) -> str:
        return self.search.get_by_id_or_title(id=args.id, collection=args.language, title=args.topic)

    def _list_docs(self, args: ListDocsArguments) -> str:
        payload = [
            {
                "name": collection.name,
                "displayName": collection.display_name,
                "description": collection.description,
                "topics": [
                    {
                        "id": topic.id,
                        "title": topic.title,
                        "description": topic.description,
                        "keywords": list(topic.keywords),
                        "language": topic.collection,
                    }
                    for topic in collection.topics
                ],
            }
            for collection in self.search.list_collections()
        ]
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def _get_go_info(self, args: GoInfoArguments) -> str:
        if args.type == "version":
            return self._fetch("go-release", "go", args.version)
        return self._fetch("go", args.import_path or "", args.version)


__all__ = ["McpDispatcher", "Tool", "USE_DOCS_PROMPT"]
