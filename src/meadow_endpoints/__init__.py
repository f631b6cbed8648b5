"""
Meadow Endpoints - CRUD REST endpoints bound to a Meadow data access layer,
with behavior injection hooks and record authorizers
"""

from meadow_endpoints.app import create_app
from meadow_endpoints.config.endpoint_permissions import EndpointAuthorizationLevels
from meadow_endpoints.dal.base import MeadowDAL
from meadow_endpoints.dal.memory import InMemoryDAL
from meadow_endpoints.endpoints import MeadowEndpoints
from meadow_endpoints.models.context import RequestContext
from meadow_endpoints.models.query import MeadowQuery
from meadow_endpoints.models.session import UserSession
from meadow_endpoints.utils.error_handling import MeadowError

__all__ = [
    "create_app",
    "EndpointAuthorizationLevels",
    "InMemoryDAL",
    "MeadowDAL",
    "MeadowEndpoints",
    "MeadowError",
    "MeadowQuery",
    "RequestContext",
    "UserSession"
]

__version__ = "1.0.0"
