"""
Meadow Endpoints API Server
FastAPI application factory for one or more Meadow endpoint sets
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meadow_endpoints.config.settings import ALLOWED_ORIGINS, MEADOW_API_VERSION
from meadow_endpoints.endpoints import MeadowEndpoints
from meadow_endpoints.middleware.session_middleware import UserSessionMiddleware
from meadow_endpoints.models.session import UserSession
from meadow_endpoints.utils.error_handling import setup_error_handling

logger = logging.getLogger(__name__)


def create_app(
    endpoints: Union[MeadowEndpoints, Iterable[MeadowEndpoints]],
    session_resolver: Optional[Callable[[str], UserSession]] = None,
    title: str = "Meadow Endpoints"
) -> FastAPI:
    """
    Build a FastAPI app serving the given endpoint sets

    Args:
        endpoints: One MeadowEndpoints or several (one per scope)
        session_resolver: Bearer token -> UserSession; defaults to the
            first endpoint set's resolver, then to session JWT validation
        title: OpenAPI title

    Returns:
        Configured FastAPI application
    """
    endpoint_sets = [endpoints] if isinstance(endpoints, MeadowEndpoints) else list(endpoints)

    if session_resolver is None:
        session_resolver = next(
            (endpoint_set.session_resolver for endpoint_set in endpoint_sets if endpoint_set.session_resolver),
            None
        )

    app = FastAPI(
        title=title,
        description="CRUD REST endpoints bound to Meadow data access layers",
        version=MEADOW_API_VERSION
    )

    # Session first so error handling wraps it (middleware runs last-added first)
    app.add_middleware(UserSessionMiddleware, session_resolver=session_resolver)

    # Setup centralized error handling
    setup_error_handling(app)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check listing the served scopes"""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "scopes": [endpoint_set.scope for endpoint_set in endpoint_sets]
        }

    for endpoint_set in endpoint_sets:
        endpoint_set.connect_routes(app)

    logger.info(f"Meadow app created for scopes: {', '.join(e.scope for e in endpoint_sets)}")
    return app
