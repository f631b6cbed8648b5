"""
Session middleware - resolves the caller's UserSession from a bearer token
"""

import logging
from typing import Callable, Optional

import jwt
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from meadow_endpoints.models.session import UserSession, anonymous_session
from meadow_endpoints.utils.auth import validate_session_token

logger = logging.getLogger(__name__)

SessionResolver = Callable[[str], UserSession]


class UserSessionMiddleware(BaseHTTPMiddleware):
    """
    Puts a UserSession on ``request.state.user_session`` for every request

    Requests without an Authorization header get the anonymous session;
    the endpoint authorization levels decide what they may reach. A
    header carrying a bad token is rejected here with 401.
    """

    def __init__(self, app, session_resolver: Optional[SessionResolver] = None):
        super().__init__(app)
        self.session_resolver = session_resolver or validate_session_token

    async def dispatch(self, request: Request, call_next):
        authorization = request.headers.get("authorization")

        if not authorization:
            request.state.user_session = anonymous_session()
            return await call_next(request)

        if not authorization.startswith("Bearer "):
            logger.warning(f"SESSION: Invalid Authorization header format on {request.url.path}")
            return self._unauthorized("Invalid authorization header format. Expected 'Bearer <token>'")

        token = authorization[7:]
        try:
            request.state.user_session = self.session_resolver(token)
        except jwt.InvalidTokenError as e:
            logger.warning(f"SESSION: Rejected token on {request.url.path}: {str(e)}")
            return self._unauthorized("Invalid or expired session token")

        return await call_next(request)

    @staticmethod
    def _unauthorized(message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"Error": message, "ErrorCode": 401},
            headers={"WWW-Authenticate": "Bearer"}
        )
