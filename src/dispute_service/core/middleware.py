"""ASGI middleware for request validation."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

_JSON_PATHS = (
    re.compile(r"^/disputes$"),
    re.compile(r"^/disputes/[^/]+/(respond|resolve|close)$"),
)
_EVIDENCE_PATH = re.compile(r"^/disputes/[^/]+/evidence$")


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "details": {}},
    )


class RequestValidationMiddleware:
    """
    ASGI middleware that validates Content-Type and body size.

    Runs before FastAPI routes. JSON endpoints must send application/json,
    the evidence endpoint must send multipart/form-data, and any POST body
    over its size limit is rejected with 413 before it reaches a route.
    """

    def __init__(self, app: ASGIApp, max_body_size: int, max_upload_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size
        self.max_upload_body_size = max_upload_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = cast("str", scope.get("method", "GET"))
        if method != "POST":
            await self.app(scope, receive, send)
            return

        path = cast("str", scope.get("path", ""))
        raw_headers = cast("list[tuple[bytes, bytes]]", scope.get("headers", []))
        headers: dict[bytes, bytes] = dict(raw_headers)
        content_type = headers.get(b"content-type", b"").decode().lower()

        if _EVIDENCE_PATH.match(path):
            if not content_type.startswith("multipart/form-data"):
                response = _error(
                    415,
                    "UNSUPPORTED_MEDIA_TYPE",
                    "Content-Type must be multipart/form-data",
                )
                await response(scope, receive, send)
                return
            limit = self.max_upload_body_size
        elif any(pattern.match(path) for pattern in _JSON_PATHS):
            if not content_type.startswith("application/json"):
                response = _error(
                    415,
                    "UNSUPPORTED_MEDIA_TYPE",
                    "Content-Type must be application/json",
                )
                await response(scope, receive, send)
                return
            limit = self.max_body_size
        else:
            limit = self.max_body_size

        # Read and buffer body, checking size
        body_parts: list[bytes] = []
        body_size = 0

        while True:
            message = cast("dict[str, Any]", await receive())
            chunk = cast("bytes", message.get("body", b""))
            body_parts.append(chunk)
            body_size += len(chunk)

            if body_size > limit:
                response = _error(
                    413,
                    "PAYLOAD_TOO_LARGE",
                    "Request body exceeds maximum allowed size",
                )
                await response(scope, receive, send)
                return

            if not message.get("more_body", False):
                break

        # Replay buffered body for downstream app
        full_body = b"".join(body_parts)
        body_sent = False

        async def buffered_receive() -> dict[str, Any]:
            nonlocal body_sent
            if not body_sent:
                body_sent = True
                return {"type": "http.request", "body": full_body, "more_body": False}
            return {"type": "http.disconnect"}

        await self.app(scope, buffered_receive, send)
