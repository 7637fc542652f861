"""Asset responder for Stagedoor.

Turns a request path into a complete response: normalize, look up, decorate.
A miss falls back to the build's ``/404.html`` and then to a bare "Not Found";
any failure along the way becomes a bare 500. Security headers are added on
every path, so even error responses are hardened.

Key classes:
- AssetResponder: Request orchestration.
- Response: Status, headers and body handed to the HTTP layer.
- RequestContext: Per-request state, including the states visited.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .paths import HeuristicPathNormalizer
from .policies import (
    CORS_HEADERS,
    apply_cors_headers,
    apply_security_headers,
    is_cors_path,
    resolve_cache_control,
)
from .protocols import AssetStore, PathNormalizer
from .stores import DEFAULT_CONTENT_TYPE, AssetRecord

NOT_FOUND_KEY = "/404.html"
NOT_FOUND_CONTENT_TYPE = "text/html;charset=UTF-8"
ALLOWED_METHODS = "GET, HEAD, OPTIONS"


class ResponderState(enum.Enum):
    RESOLVING = "resolving"
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERRORED = "errored"
    RESPONDING = "responding"


@dataclass
class Response:
    """Response produced by the responder.

    Attributes:
        status: HTTP status code.
        headers: Header name to value, in sending order.
        body: Response body.
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Return a header value, matching the name case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass
class RequestContext:
    """State of one request while it is being answered.

    Attributes:
        request_path: Decoded request path as received.
        lookup_key: Key produced by the normalizer.
        record: Asset found for the key, if any.
        state: Current responder state.
        trail: Every state entered, in order.
    """

    request_path: str
    lookup_key: str | None = None
    record: AssetRecord | None = None
    state: ResponderState = ResponderState.RESOLVING
    trail: list[ResponderState] = field(default_factory=lambda: [ResponderState.RESOLVING])

    def enter(self, state: ResponderState) -> None:
        self.state = state
        self.trail.append(state)


def error_response() -> Response:
    """Return the bare 500 response sent when a request cannot be answered."""
    return Response(
        status=500,
        headers=apply_security_headers({}),
        body=b"Internal Server Error",
    )


class AssetResponder:
    """Answers requests from a read-only asset store.

    Attributes:
        store: Store to look assets up in.
        normalizer: Maps request paths to lookup keys.
        not_found_key: Key of the page served with 404 responses.
    """

    def __init__(
        self,
        store: AssetStore,
        normalizer: PathNormalizer | None = None,
        not_found_key: str = NOT_FOUND_KEY,
    ):
        self.store = store
        self.normalizer = normalizer or HeuristicPathNormalizer()
        self.not_found_key = not_found_key

    async def respond(self, request_path: str, method: str = "GET") -> Response:
        """Answer one request. Never raises.

        Args:
            request_path: Decoded request path.
            method: HTTP method. HEAD is answered like GET; the HTTP layer
                drops the body.

        Returns:
            The response to send.
        """
        _, response = await self.describe(request_path, method)
        return response

    async def describe(
        self, request_path: str, method: str = "GET"
    ) -> tuple[RequestContext, Response]:
        """Answer one request and also return the context it went through."""
        context = RequestContext(request_path=request_path)
        method = method.upper()
        if method == "OPTIONS":
            response = self._preflight(request_path)
        elif method not in ("GET", "HEAD"):
            response = self._method_not_allowed()
        else:
            try:
                response = await self._resolve(context)
            except Exception as exc:
                context.enter(ResponderState.ERRORED)
                print(f"Error serving {request_path!r}: {type(exc).__name__}: {exc}")
                response = error_response()
        context.enter(ResponderState.RESPONDING)
        return context, response

    async def _resolve(self, context: RequestContext) -> Response:
        context.lookup_key = self.normalizer.normalize(context.request_path)
        record = await self.store.get(context.lookup_key)
        if record is not None:
            context.record = record
            context.enter(ResponderState.FOUND)
            return self._found(record, context.request_path)
        context.enter(ResponderState.NOT_FOUND)
        return await self._not_found()

    def _found(self, record: AssetRecord, request_path: str) -> Response:
        if not isinstance(record.body, (bytes, bytearray, memoryview)):
            raise TypeError(f"asset {record.path} has a {type(record.body).__name__} body")
        content_type = record.content_type or DEFAULT_CONTENT_TYPE
        headers = {
            "Content-Type": content_type,
            "Cache-Control": resolve_cache_control(content_type),
        }
        apply_security_headers(headers)
        apply_cors_headers(headers, request_path)
        return Response(status=200, headers=headers, body=bytes(record.body))

    async def _not_found(self) -> Response:
        page = await self.store.get(self.not_found_key)
        if page is None:
            return Response(status=404, headers=apply_security_headers({}), body=b"Not Found")
        headers = {"Content-Type": NOT_FOUND_CONTENT_TYPE}
        apply_security_headers(headers)
        return Response(status=404, headers=headers, body=bytes(page.body))

    def _preflight(self, request_path: str) -> Response:
        if not is_cors_path(request_path):
            return self._method_not_allowed()
        headers = dict(CORS_HEADERS)
        apply_security_headers(headers)
        return Response(status=204, headers=headers)

    def _method_not_allowed(self) -> Response:
        headers = {"Allow": ALLOWED_METHODS}
        apply_security_headers(headers)
        return Response(status=405, headers=headers, body=b"Method Not Allowed")
