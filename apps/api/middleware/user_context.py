"""
User context middleware.

Authentication happens upstream (gateway / reverse proxy); it forwards the
authenticated user in a header. This middleware copies it onto
request.state so routers can depend on it.
"""
from typing import Optional

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware

USER_HEADER = "X-User-Id"


class UserContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = USER_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        user_id = (request.headers.get(self.header_name) or "").strip()
        request.state.user_id = user_id or None
        return await call_next(request)


def current_user_id(request: Request) -> str:
    """FastAPI dependency: the forwarded user, 401 when absent"""
    user_id: Optional[str] = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_HEADER} header",
        )
    return user_id
