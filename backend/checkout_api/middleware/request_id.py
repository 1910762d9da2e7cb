"""
Request ID middleware for tracing.

Uses pure ASGI middleware (not BaseHTTPMiddleware) so background tasks and
async generator dependencies keep working.
"""
import uuid
from urllib.parse import parse_qs

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestIdMiddleware:
    """
    Adds a request ID to each request's response headers and logging context.
    Checkout session ids in the query string are bound to the context too, so
    a success callback and the polls that follow it can be correlated.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = None
        for header_name, header_value in scope.get("headers", []):
            if header_name == b"x-request-id":
                request_id = header_value.decode("utf-8")
                break

        if not request_id:
            request_id = str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=scope.get("path", ""),
            method=scope.get("method", ""),
        )

        query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
        session_ids = query.get("session_id")
        if session_ids:
            structlog.contextvars.bind_contextvars(session_id=session_ids[0])

        if "state" not in scope:
            scope["state"] = {}
        scope["state"]["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append([b"x-request-id", request_id.encode("utf-8")])
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_request_id)
