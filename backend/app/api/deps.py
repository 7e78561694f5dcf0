"""Request-scoped dependencies shared by the routers."""

import uuid

from fastapi import Request, Response

from backend.app.config import settings

SESSION_HEADER = "X-Session-Id"
SESSION_COOKIE = "sessionId"


def get_session_id(request: Request, response: Response) -> str:
    """Resolve the caller's opaque session id, issuing a cookie for new visitors.

    The ``X-Session-Id`` header wins over the cookie so API clients can pin
    their identity explicitly.
    """
    session_id = request.headers.get(SESSION_HEADER) or request.cookies.get(SESSION_COOKIE)
    if not session_id:
        session_id = str(uuid.uuid4())
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=settings.session_cookie_max_age,
            httponly=True,
            samesite="strict",
            path="/",
        )
    return session_id
