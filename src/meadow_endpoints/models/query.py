"""
Query models - the value object a DAL executes for every endpoint operation
"""

from typing import List, Dict, Any, Optional, Literal
from pydantic import BaseModel, Field

FILTER_OPERATORS = ("=", "!=", ">", ">=", "<", "<=", "LIKE", "NOT LIKE", "IN", "NOT IN", "(", ")")


class FilterClause(BaseModel):
    """One filter predicate (or group paren) in a query"""
    column: str
    operator: str = "="
    value: Any = None
    connector: Literal["AND", "OR"] = "AND"
    parameter: Optional[str] = None


class SortClause(BaseModel):
    """ORDER BY entry"""
    column: str
    direction: Literal["Ascending", "Descending"] = "Ascending"


class MeadowQuery(BaseModel):
    """
    Mutable query builder handed out by a DAL.

    Setters return the query so calls can be chained, the way endpoint
    stages build a query up: ``query.set_cap(10).set_begin(0)``.
    A begin or cap of ``None`` means "not set".
    """
    scope: str = ""
    begin: Optional[int] = None
    cap: Optional[int] = None
    filters: List[FilterClause] = Field(default_factory=list)
    sort: List[SortClause] = Field(default_factory=list)
    distinct: bool = False
    data_elements: Optional[List[str]] = None
    records: List[Dict[str, Any]] = Field(default_factory=list)
    id_user: int = 0
    log_level: int = 0

    def set_cap(self, cap: Optional[int]) -> "MeadowQuery":
        self.cap = cap
        return self

    def set_begin(self, begin: Optional[int]) -> "MeadowQuery":
        self.begin = begin
        return self

    def set_distinct(self, distinct: bool) -> "MeadowQuery":
        self.distinct = bool(distinct)
        return self

    def set_data_elements(self, data_elements: Optional[List[str]]) -> "MeadowQuery":
        self.data_elements = list(data_elements) if data_elements else None
        return self

    def add_filter(
        self,
        column: str,
        value: Any,
        operator: str = "=",
        connector: str = "AND",
        parameter: Optional[str] = None
    ) -> "MeadowQuery":
        """
        Add a filter predicate

        Args:
            column: Field name to filter on
            value: Value to compare with (a list for IN / NOT IN)
            operator: One of FILTER_OPERATORS
            connector: Boolean join with the previous predicate (AND / OR)
            parameter: Optional tag naming where the filter came from

        Returns:
            The query, for chaining
        """
        if operator not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {operator}")
        self.filters.append(FilterClause(
            column=column,
            operator=operator,
            value=value,
            connector=connector,
            parameter=parameter
        ))
        return self

    def set_filter(self, filters: List[Any]) -> "MeadowQuery":
        """Replace the filters with pre-built clauses (FilterClause or mappings)"""
        if isinstance(filters, (dict, FilterClause)):
            filters = [filters]
        clauses = []
        for clause in filters or []:
            if isinstance(clause, FilterClause):
                clauses.append(clause)
            else:
                clauses.append(FilterClause(
                    column=clause.get("Column", clause.get("column", "")),
                    operator=clause.get("Operator", clause.get("operator", "=")),
                    value=clause.get("Value", clause.get("value")),
                    connector=clause.get("Connector", clause.get("connector", "AND")),
                    parameter=clause.get("Parameter", clause.get("parameter"))
                ))
        self.filters = clauses
        return self

    def add_sort(self, column: str, direction: str = "Ascending") -> "MeadowQuery":
        self.sort.append(SortClause(column=column, direction=direction))
        return self

    def add_record(self, record: Dict[str, Any]) -> "MeadowQuery":
        self.records.append(record)
        return self

    def set_id_user(self, id_user: int) -> "MeadowQuery":
        self.id_user = id_user
        return self

    def set_log_level(self, log_level: int) -> "MeadowQuery":
        self.log_level = log_level
        return self
