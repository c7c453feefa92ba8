"""Line-delimited JSON-RPC over standard input and output."""

from __future__ import annotations

import json
import sys
from typing import IO

from opencontext.api.dispatcher import McpDispatcher
from opencontext.api.schemas import INTERNAL_ERROR, JsonRpcError, JsonRpcResponse
from opencontext.metrics.observability import get_logger


def serve_stdio(
    dispatcher: McpDispatcher,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
) -> int:
    """Answer one request per input line until end of input.

    Requests are handled one at a time in arrival order. Blank lines are
    ignored and notifications produce no output.
    """

    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    logger = get_logger("stdio")
    logger.info("stdio.started")
    for line in stdin:
        if not line.strip():
            continue
        try:
            response = dispatcher.handle_raw(line)
        except Exception as exc:
            logger.exception("stdio.request_failed")
            response = JsonRpcResponse(
                id=None, error=JsonRpcError(code=INTERNAL_ERROR, message=f"Internal error: {exc}")
            ).to_payload()
        if response is None:
            continue
        stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
        stdout.flush()
    logger.info("stdio.stopped")
    return 0


__all__ = ["serve_stdio"]
