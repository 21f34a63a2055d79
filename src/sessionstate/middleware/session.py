import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from ..config import CookieSettings
from ..errors import SessionNotLoadedError
from ..manager import REMEMBER_ME_KEY, Manager
from ..record import SessionScope, utcnow

logger = logging.getLogger('sessionstate.middleware')

# Sent with the cookie when the session was destroyed so the browser drops it
EXPIRED_COOKIE_DATE = datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

ErrorHandler = Callable[[Request, Exception], Awaitable[Response]]


async def default_error_handler(request: Request, exc: Exception) -> Response:
    logger.error(f"Session error for {request.url}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error occurred",
            "error_code": "session_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Load the session before each request and save it afterwards.

    The session token travels in a cookie. Handlers reach the session through
    `request.state.session`, a SessionScope to pass to the manager.

    The session is saved as soon as the handler returns its response, before
    the body is sent. Changes made while a StreamingResponse body is being
    generated are not saved, so make them before returning the response.
    """

    def __init__(
        self,
        app: ASGIApp,
        manager: Manager,
        cookie: Optional[CookieSettings] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        super().__init__(app)
        self.manager = manager
        self.cookie = cookie or CookieSettings()
        self.error_handler = error_handler or default_error_handler

    async def dispatch(self, request: Request, call_next):
        token = request.cookies.get(self.cookie.name)
        logger.debug(f"Session cookie present: {bool(token)}")

        scope = SessionScope()
        try:
            await self.manager.load(scope, token)
        except Exception as exc:
            return await self.error_handler(request, exc)

        request.state.session = scope
        response = await call_next(request)

        try:
            result = await self.manager.save(scope)
        except Exception as exc:
            return await self.error_handler(request, exc)

        if not result.unmodified:
            await self.write_session_cookie(scope, response, result.token, result.expiry)

        response.headers.append("Vary", "Cookie")
        return response

    async def write_session_cookie(
        self,
        scope: SessionScope,
        response: Response,
        token: str,
        expiry: Optional[datetime],
    ) -> None:
        """
        Set the session cookie on `response`.

        A missing expiry means the session is gone, so the cookie is sent
        already expired. Otherwise Expires/Max-Age are only included for
        persistent cookies or sessions with remember_me() set; both are
        rounded up to the next second.
        """
        max_age = None
        expires = None
        if expiry is None:
            max_age = 0
            expires = EXPIRED_COOKIE_DATE
        elif self.cookie.persist or await self.manager.get_bool(scope, REMEMBER_ME_KEY):
            expires = datetime.fromtimestamp(int(expiry.timestamp()) + 1, tz=timezone.utc)
            max_age = max(int((expiry - utcnow()).total_seconds() + 1), 0)

        response.set_cookie(
            key=self.cookie.name,
            value=token,
            max_age=max_age,
            expires=expires,
            path=self.cookie.path,
            domain=self.cookie.domain,
            secure=self.cookie.secure,
            httponly=self.cookie.http_only,
            samesite=self.cookie.same_site,
        )
        response.headers.append("Cache-Control", 'no-cache="Set-Cookie"')


def get_session_scope(request: Request) -> SessionScope:
    """FastAPI dependency returning the scope loaded by SessionMiddleware."""
    scope = getattr(request.state, "session", None)
    if scope is None:
        raise SessionNotLoadedError("SessionMiddleware is not installed for this application")
    return scope
