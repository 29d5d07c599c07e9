"""
Cross-origin middleware for the browser-facing endpoints.

Every response carries permissive CORS headers; any OPTIONS request is a
pre-flight and is answered with an empty 204 before routing.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


DEFAULT_CORS_HEADERS: Mapping[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: Any,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(app)
        self.headers = dict(headers or DEFAULT_CORS_HEADERS)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Any]
    ) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=self.headers)

        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        return response
