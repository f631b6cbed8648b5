"""
MeadowEndpoints - binds one DAL scope to the endpoint pipelines
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from starlette.responses import Response

from meadow_endpoints.api.routes.meadow import build_router
from meadow_endpoints.config.endpoint_permissions import EndpointAuthorizationLevels
from meadow_endpoints.config.settings import MEADOW_AUTHORIZATION_MODE, MEADOW_DEFAULT_MAX_CAP
from meadow_endpoints.crud import counts, reads, records, schema
from meadow_endpoints.dal.base import MeadowDAL
from meadow_endpoints.models.context import RequestContext
from meadow_endpoints.models.session import UserSession, anonymous_session
from meadow_endpoints.services.authorizer_service import MeadowAuthorizers
from meadow_endpoints.services.behavior_service import BehaviorModifications
from meadow_endpoints.services.common_service import CommonServices

logger = logging.getLogger(__name__)

Operation = Callable[[RequestContext], Awaitable[Response]]

OPERATIONS: Dict[str, Operation] = {
    "Create": records.do_create,
    "Read": records.do_read,
    "Reads": reads.do_reads,
    "ReadsBy": reads.do_reads_by,
    "ReadLite": reads.do_read_lite,
    "ReadSelectList": reads.do_read_select_list,
    "ReadDistinct": reads.do_read_distinct,
    "Update": records.do_update,
    "Delete": records.do_delete,
    "Count": counts.do_count,
    "CountBy": counts.do_count_by,
    "Schema": schema.do_schema,
    "New": schema.do_new,
    "Validate": schema.do_validate
}


class MeadowEndpoints:
    """
    Endpoint set for one DAL scope.

    Holds the behavior and authorizer registries the embedding application
    customizes, and runs each operation's pipeline against a fresh
    RequestContext per request.

        endpoints = MeadowEndpoints(InMemoryDAL("Book", BOOK_SCHEMA))
        endpoints.behaviors.set_behavior("Reads-QueryConfiguration", only_in_print)
        endpoints.connect_routes(app)
    """

    def __init__(
        self,
        dal: MeadowDAL,
        authorization_mode: Optional[str] = None,
        default_max_cap: Optional[int] = None,
        endpoint_authorization_levels: Optional[EndpointAuthorizationLevels] = None,
        session_resolver: Optional[Callable[[str], UserSession]] = None
    ):
        self.dal = dal
        self.authorization_mode = authorization_mode or MEADOW_AUTHORIZATION_MODE
        self.default_max_cap = default_max_cap if default_max_cap is not None else MEADOW_DEFAULT_MAX_CAP
        self.endpoint_authorization_levels = endpoint_authorization_levels or EndpointAuthorizationLevels()
        self.session_resolver = session_resolver

        self.behaviors = BehaviorModifications()
        self.authorizers = MeadowAuthorizers(self.authorization_mode)
        self.common = CommonServices()

        logger.info(f"Meadow endpoints for {dal.scope} initialized ({self.authorization_mode} authorization)")

    @property
    def scope(self) -> str:
        return self.dal.scope

    def create_context(
        self,
        user_session: Optional[UserSession] = None,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        url: str = "",
        request_id: str = ""
    ) -> RequestContext:
        """Build the per-request context every pipeline stage works on"""
        return RequestContext(
            dal=self.dal,
            behaviors=self.behaviors,
            authorizers=self.authorizers,
            common=self.common,
            authorization_levels=self.endpoint_authorization_levels,
            default_max_cap=self.default_max_cap,
            user_session=user_session or anonymous_session(),
            params=dict(params or {}),
            body=body,
            url=url,
            request_id=request_id
        )

    async def invoke(self, operation: str, context: RequestContext) -> Response:
        """
        Run one operation's pipeline

        Args:
            operation: Operation name, e.g. ``Reads``
            context: Context from ``create_context``

        Returns:
            The single response for the request

        Raises:
            KeyError: If the operation does not exist
        """
        if operation not in OPERATIONS:
            raise KeyError(f"Unknown Meadow operation: {operation}")
        return await OPERATIONS[operation](context)

    def connect_routes(self, app) -> None:
        """Mount this scope's routes on a FastAPI app (or router)"""
        app.include_router(build_router(self), tags=[self.scope])
