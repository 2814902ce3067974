"""Protected-route table and the middleware that enforces a session on it.

Pattern syntax, always matched against the whole path:

- ``/settings``          exact path
- ``/users/{user_id}``   one named segment (``/users/:user_id`` also works)
- ``/dashboard(.*)``     prefix: the path and anything after it
"""

import re
from dataclasses import dataclass
from typing import Iterable
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.clerk import ClerkSessionVerifier
from app.core.exceptions import AuthDenied, error_response
from app.core.logging import get_logger

log = get_logger(__name__)

_TOKEN = re.compile(r"\(\.\*\)|\{[A-Za-z_][A-Za-z0-9_]*\}|:[A-Za-z_][A-Za-z0-9_]*")


def compile_pattern(pattern: str) -> re.Pattern[str]:
    if not pattern.startswith("/"):
        raise ValueError(f"Route pattern must start with '/': {pattern!r}")
    parts = []
    pos = 0
    for m in _TOKEN.finditer(pattern):
        parts.append(re.escape(pattern[pos:m.start()]))
        parts.append(".*" if m.group() == "(.*)" else "[^/]+")
        pos = m.end()
    parts.append(re.escape(pattern[pos:]))
    return re.compile("".join(parts))


@dataclass(frozen=True)
class RouteMatcher:
    patterns: tuple[str, ...]
    _compiled: tuple[re.Pattern[str], ...]

    def matches(self, path: str) -> bool:
        return any(rx.fullmatch(path) for rx in self._compiled)

    def __call__(self, request: Request) -> bool:
        return self.matches(request.url.path)


def create_route_matcher(patterns: Iterable[str]) -> RouteMatcher:
    patterns = tuple(patterns)
    return RouteMatcher(patterns=patterns, _compiled=tuple(compile_pattern(p) for p in patterns))


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Halt requests to protected paths that lack a valid Clerk session.

    Verified claims land on ``request.state.auth``; unprotected paths never
    touch the verifier.
    """

    def __init__(self, app, matcher: RouteMatcher, verifier: ClerkSessionVerifier, sign_in_url: str | None = None):
        super().__init__(app)
        self.matcher = matcher
        self.verifier = verifier
        self.sign_in_url = sign_in_url

    async def dispatch(self, request: Request, call_next):
        # CORS preflights never carry a session.
        if request.method == "OPTIONS" or not self.matcher(request):
            return await call_next(request)
        try:
            request.state.auth = await self.verifier.protect(request)
        except AuthDenied as exc:
            log.info("route_guard_denied", path=request.url.path, reason=exc.message)
            if self.sign_in_url and _wants_html(request):
                query = urlencode({"redirect_url": str(request.url)})
                return RedirectResponse(f"{self.sign_in_url}?{query}", status_code=307)
            return error_response(request, exc)
        return await call_next(request)
