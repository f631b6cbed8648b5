"""
Request context - the per-request state threaded through every pipeline stage
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from meadow_endpoints.models.query import MeadowQuery
from meadow_endpoints.models.session import UserSession, anonymous_session

if TYPE_CHECKING:
    from meadow_endpoints.config.endpoint_permissions import EndpointAuthorizationLevels
    from meadow_endpoints.dal.base import MeadowDAL
    from meadow_endpoints.services.authorizer_service import MeadowAuthorizers
    from meadow_endpoints.services.behavior_service import BehaviorModifications
    from meadow_endpoints.services.common_service import CommonServices


@dataclass
class RequestContext:
    """
    Mutable, request-scoped state bag.

    One instance is built per request and passed to each stage in turn.
    Behaviors and authorizers mutate it in place; that is how they
    influence the rest of the pipeline.

    Attributes:
        dal: Data access layer the endpoint operates on
        behaviors: Behavior hook registry shared by the endpoint set
        authorizers: Authorizer registry shared by the endpoint set
        common: Common services (endpoint auth, error responses, logging)
        user_session: Identity of the caller
        params: Route and query string parameters (Begin, Cap, Filter, ...)
        body: Parsed request body, if any
        query: Query under construction for this request
        record: The single active record, if any
        records: The active record set, if any
        authorize_override: Privileged bypass of record authorizers.
            Anything that sets this skips every predicate; only trusted
            embedding code may set it.
        state: Scratch space for operation results hooks may alter
            (JSONSchema, Validation, Count, ...)
    """
    dal: "MeadowDAL"
    behaviors: "BehaviorModifications"
    authorizers: "MeadowAuthorizers"
    common: "CommonServices"
    authorization_levels: "EndpointAuthorizationLevels"
    default_max_cap: int = 250
    user_session: UserSession = field(default_factory=anonymous_session)
    params: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    url: str = ""
    request_id: str = ""
    operation: str = ""
    endpoint_hash: str = ""
    endpoint_authorization_requirement: int = 0
    query: Optional[MeadowQuery] = None
    record: Optional[Dict[str, Any]] = None
    records: Optional[List[Dict[str, Any]]] = None
    authorize_override: bool = False
    state: Dict[str, Any] = field(default_factory=dict)
    _authorized: bool = field(default=True, repr=False)

    @property
    def meadow_authorization(self) -> bool:
        """Aggregate authorization flag; starts True for every request"""
        return self._authorized

    @meadow_authorization.setter
    def meadow_authorization(self, value: bool) -> None:
        # Once denied, a request stays denied
        self._authorized = self._authorized and bool(value)

    def deny(self) -> None:
        """Mark the request unauthorized for the rest of its lifetime"""
        self._authorized = False

    @property
    def action(self) -> str:
        """Log action name, e.g. ``Book-Reads``"""
        return f"{self.dal.scope}-{self.operation}"

    def clear_records(self) -> None:
        """Drop intermediate record references"""
        self.record = None
        self.records = None

    def log_fields(self) -> Dict[str, Any]:
        """Request correlation fields attached to every log line"""
        return {
            "SessionID": self.user_session.session_id,
            "RequestID": self.request_id,
            "RequestURL": self.url,
            "Action": self.action
        }
