"""
Data access layer contract consumed by the endpoint pipelines
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from meadow_endpoints.config.endpoint_permissions import get_role_name
from meadow_endpoints.models.query import MeadowQuery


class MeadowDAL(ABC):
    """
    Storage collaborator for one record scope (e.g. ``Book``).

    Providers implement the ``do_*`` coroutines; the pipelines never
    touch storage any other way.
    """

    def __init__(
        self,
        scope: str,
        default_identifier: Optional[str] = None,
        default_guid_identifier: Optional[str] = None,
        json_schema: Optional[Dict[str, Any]] = None,
        default_object: Optional[Dict[str, Any]] = None,
        authorizer: Optional[Dict[str, Any]] = None
    ):
        self.scope = scope
        self.default_identifier = default_identifier or f"ID{scope}"
        self.default_guid_identifier = default_guid_identifier or ""
        self.json_schema = json_schema or {"title": scope, "type": "object", "properties": {}}
        self.default_object = default_object or {}
        self.schema_full: Dict[str, Any] = {"authorizer": authorizer or {}}

    @property
    def query(self) -> MeadowQuery:
        """A fresh query scoped to this DAL"""
        return MeadowQuery(scope=self.scope)

    def get_role_name(self, role_index: int) -> str:
        return get_role_name(role_index)

    def set_authorizer_table(self, authorizer: Dict[str, Any]) -> None:
        """Replace the per-role endpoint authorizer table"""
        self.schema_full["authorizer"] = authorizer

    @abstractmethod
    async def do_create(self, query: MeadowQuery) -> Dict[str, Any]:
        """Create ``query.records[0]`` and return the stored record"""

    @abstractmethod
    async def do_read(self, query: MeadowQuery) -> Optional[Dict[str, Any]]:
        """Return the first record matching the query, or None"""

    @abstractmethod
    async def do_reads(self, query: MeadowQuery) -> Optional[List[Dict[str, Any]]]:
        """Return the records matching the query (paged by begin / cap)"""

    @abstractmethod
    async def do_update(self, query: MeadowQuery) -> Dict[str, Any]:
        """Update the record identified in ``query.records[0]``"""

    @abstractmethod
    async def do_delete(self, query: MeadowQuery) -> int:
        """Delete matching records and return how many were deleted"""

    @abstractmethod
    async def do_count(self, query: MeadowQuery) -> int:
        """Count matching records"""
