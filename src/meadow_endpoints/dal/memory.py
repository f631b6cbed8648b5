"""
InMemoryDAL - dict-backed data access layer for development, demos and tests
"""

import copy
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from meadow_endpoints.dal.base import MeadowDAL
from meadow_endpoints.models.query import FilterClause, MeadowQuery
from meadow_endpoints.utils.error_handling import ClientInputError, RecordNotFoundError

logger = logging.getLogger(__name__)

# Column types stamped by the provider rather than the caller
AUTO_IDENTITY = "AutoIdentity"
AUTO_GUID = "AutoGUID"
CREATE_DATE = "CreateDate"
CREATE_ID_USER = "CreateIDUser"
UPDATE_DATE = "UpdateDate"
UPDATE_ID_USER = "UpdateIDUser"
DELETED = "Deleted"
DELETE_DATE = "DeleteDate"
DELETE_ID_USER = "DeleteIDUser"

PROTECTED_TYPES = {AUTO_IDENTITY, AUTO_GUID, CREATE_DATE, CREATE_ID_USER, DELETED, DELETE_DATE, DELETE_ID_USER}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _like_pattern(pattern: str) -> "re.Pattern":
    regex = "".join(
        ".*" if char == "%" else "." if char == "_" else re.escape(char)
        for char in str(pattern)
    )
    return re.compile(f"^{regex}$", re.IGNORECASE | re.DOTALL)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    if isinstance(value, str):
        return [item for item in value.split(",")]
    return [value]


def _loose_equal(left: Any, right: Any) -> bool:
    """Equality that lets URL strings match numeric columns"""
    if left == right:
        return True
    if left is None or right is None:
        return False
    return str(left) == str(right)


def _ordered(left: Any, right: Any, operator: str) -> bool:
    if left is None or right is None:
        return False
    if isinstance(left, (int, float)) and isinstance(right, str):
        try:
            right = type(left)(right)
        except ValueError:
            return False
    try:
        if operator == ">":
            return left > right
        if operator == ">=":
            return left >= right
        if operator == "<":
            return left < right
        return left <= right
    except TypeError:
        return False


def _sort_key(value: Any):
    # None sorts last; numbers and strings never compare with each other
    if value is None:
        return (1, 0, 0)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, 0, value)
    return (0, 1, str(value))


def _compare(record: Dict[str, Any], clause: FilterClause) -> bool:
    column = clause.column.split(".")[-1]
    value = record.get(column)
    operator = clause.operator

    if operator == "=":
        return _loose_equal(value, clause.value)
    if operator == "!=":
        return not _loose_equal(value, clause.value)
    if operator in (">", ">=", "<", "<="):
        return _ordered(value, clause.value, operator)
    if operator in ("LIKE", "NOT LIKE"):
        matched = value is not None and bool(_like_pattern(clause.value).match(str(value)))
        return matched if operator == "LIKE" else not matched
    if operator in ("IN", "NOT IN"):
        found = any(_loose_equal(value, candidate) for candidate in _as_list(clause.value))
        return found if operator == "IN" else not found
    raise ClientInputError(f"Unsupported filter operator: {operator}")


def _group_value(chains: List[List[bool]]) -> bool:
    # OR of AND-chains; an empty group matches everything
    chains = [chain for chain in chains if chain]
    if not chains:
        return True
    return any(all(chain) for chain in chains)


def matches_filters(record: Dict[str, Any], filters: List[FilterClause]) -> bool:
    """Evaluate query filters against a record with SQL AND-before-OR precedence"""
    groups: List[List[List[bool]]] = [[[]]]
    connectors: List[str] = []

    for clause in filters:
        if clause.operator == "(":
            groups.append([[]])
            connectors.append(clause.connector)
            continue
        if clause.operator == ")":
            if len(groups) == 1:
                continue
            value = _group_value(groups.pop())
            connector = connectors.pop()
        else:
            value = _compare(record, clause)
            connector = clause.connector

        chains = groups[-1]
        if connector == "OR" and chains[-1]:
            chains.append([value])
        else:
            chains[-1].append(value)

    # Unbalanced open parens close at the end of the filter
    while len(groups) > 1:
        value = _group_value(groups.pop())
        connector = connectors.pop()
        chains = groups[-1]
        if connector == "OR" and chains[-1]:
            chains.append([value])
        else:
            chains[-1].append(value)

    return _group_value(groups[0])


class InMemoryDAL(MeadowDAL):
    """
    Reference provider keeping records in a list.

    The column schema uses Meadow column types; stamped columns
    (identity, GUID, create/update/delete dates and users) are filled in
    automatically. Records handed out are deep copies.
    """

    def __init__(
        self,
        scope: str,
        schema: List[Dict[str, str]],
        json_schema: Optional[Dict[str, Any]] = None,
        default_object: Optional[Dict[str, Any]] = None,
        authorizer: Optional[Dict[str, Any]] = None
    ):
        self.schema = schema
        self._columns_by_type: Dict[str, str] = {}
        for column in schema:
            self._columns_by_type.setdefault(column.get("Type", ""), column["Column"])

        super().__init__(
            scope,
            default_identifier=self._columns_by_type.get(AUTO_IDENTITY),
            default_guid_identifier=self._columns_by_type.get(AUTO_GUID),
            json_schema=json_schema,
            default_object=default_object,
            authorizer=authorizer
        )

        self._records: List[Dict[str, Any]] = []
        self._next_id = 1

    def _column(self, column_type: str) -> Optional[str]:
        return self._columns_by_type.get(column_type)

    def _live_records(self, query: MeadowQuery) -> List[Dict[str, Any]]:
        deleted_column = self._column(DELETED)
        filters_on_deleted = deleted_column and any(
            clause.column.split(".")[-1] == deleted_column for clause in query.filters
        )
        records = self._records
        if deleted_column and not filters_on_deleted:
            records = [record for record in records if not record.get(deleted_column)]
        return [record for record in records if matches_filters(record, query.filters)]

    def _sorted(self, records: List[Dict[str, Any]], query: MeadowQuery) -> List[Dict[str, Any]]:
        records = list(records)
        for sort in reversed(query.sort):
            column = sort.column.split(".")[-1]
            records.sort(
                key=lambda record: _sort_key(record.get(column)),
                reverse=sort.direction == "Descending"
            )
        return records

    @staticmethod
    def _page(records: List[Dict[str, Any]], query: MeadowQuery) -> List[Dict[str, Any]]:
        begin = query.begin if query.begin and query.begin > 0 else 0
        if query.cap is None or query.cap < 0:
            return records[begin:]
        return records[begin:begin + query.cap]

    def _project(self, records: List[Dict[str, Any]], query: MeadowQuery) -> List[Dict[str, Any]]:
        if not query.data_elements:
            return [copy.deepcopy(record) for record in records]

        projected = []
        seen = set()
        for record in records:
            row = {column: copy.deepcopy(record.get(column)) for column in query.data_elements}
            if query.distinct:
                key = repr(sorted(row.items(), key=lambda item: item[0]))
                if key in seen:
                    continue
                seen.add(key)
            projected.append(row)
        return projected

    async def do_create(self, query: MeadowQuery) -> Dict[str, Any]:
        if not query.records:
            raise ClientInputError("No record was passed to create")

        record = copy.deepcopy(self.default_object)
        record.update(copy.deepcopy(query.records[0]))

        now = _now()
        stamps = {
            AUTO_IDENTITY: self._next_id,
            CREATE_DATE: now,
            UPDATE_DATE: now,
            CREATE_ID_USER: query.id_user,
            UPDATE_ID_USER: query.id_user,
            DELETED: False
        }
        for column_type, value in stamps.items():
            column = self._column(column_type)
            if column:
                record[column] = value

        guid_column = self._column(AUTO_GUID)
        if guid_column and not record.get(guid_column):
            record[guid_column] = str(uuid.uuid4())

        self._next_id += 1
        self._records.append(record)
        logger.debug(f"{self.scope}: created record {record.get(self.default_identifier)}")
        return copy.deepcopy(record)

    async def do_read(self, query: MeadowQuery) -> Optional[Dict[str, Any]]:
        records = self._sorted(self._live_records(query), query)
        if not records:
            return None
        return self._project(records[:1], query)[0]

    async def do_reads(self, query: MeadowQuery) -> Optional[List[Dict[str, Any]]]:
        records = self._sorted(self._live_records(query), query)
        return self._page(self._project(records, query), query)

    async def do_update(self, query: MeadowQuery) -> Dict[str, Any]:
        if not query.records:
            raise ClientInputError("No record was passed to update")

        changes = query.records[0]
        record_id = changes.get(self.default_identifier)
        lookup = self.query.add_filter(self.default_identifier, record_id)
        stored = next(iter(self._live_records(lookup)), None)
        if stored is None:
            raise RecordNotFoundError(f"No {self.scope} record found to update with ID {record_id}")

        protected = {column["Column"] for column in self.schema if column.get("Type") in PROTECTED_TYPES}
        for key, value in changes.items():
            if key not in protected:
                stored[key] = copy.deepcopy(value)

        for column_type, value in ((UPDATE_DATE, _now()), (UPDATE_ID_USER, query.id_user)):
            column = self._column(column_type)
            if column:
                stored[column] = value

        return copy.deepcopy(stored)

    async def do_delete(self, query: MeadowQuery) -> int:
        targets = self._live_records(query)
        deleted_column = self._column(DELETED)

        if deleted_column:
            now = _now()
            for record in targets:
                record[deleted_column] = True
                for column_type, value in ((DELETE_DATE, now), (DELETE_ID_USER, query.id_user)):
                    column = self._column(column_type)
                    if column:
                        record[column] = value
        else:
            target_ids = {id(record) for record in targets}
            self._records = [record for record in self._records if id(record) not in target_ids]

        return len(targets)

    async def do_count(self, query: MeadowQuery) -> int:
        return len(self._live_records(query))
