"""Session resolution.

The middleware turns the bearer token (or the ``session`` cookie) of every
HTTP request into a :class:`RequestContext` stored on ``request.state``.
Handlers receive that context through dependencies; nothing looks the
session up globally.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
import logging

from starlette.datastructures import Headers
from starlette.requests import cookie_parser
from starlette.types import ASGIApp, Receive, Scope, Send

from invgen.core.security import ACCESS_TOKEN_TYPE, decoded_token

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session"


@dataclass(frozen=True)
class RequestContext:
    user_id: Optional[UUID] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = RequestContext()


def extract_token(headers: Headers) -> Optional[str]:
    authorization = headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    cookies = cookie_parser(headers.get("cookie", ""))
    return cookies.get(SESSION_COOKIE_NAME) or None


def resolve_context(token: Optional[str]) -> RequestContext:
    """Map a session token to the caller's user id."""
    if not token:
        return ANONYMOUS
    payload = decoded_token(token)
    if payload is None or payload.get("type") != ACCESS_TOKEN_TYPE:
        return ANONYMOUS
    try:
        return RequestContext(user_id=UUID(str(payload.get("sub"))))
    except ValueError:
        logger.warning("Session token carries a malformed subject")
        return ANONYMOUS


class SessionContextMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] == "http":
            state = scope.setdefault("state", {})
            state["context"] = resolve_context(extract_token(Headers(scope=scope)))
        await self.app(scope, receive, send)
