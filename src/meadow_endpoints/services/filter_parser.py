"""
Meadow filter string parser

Grammar: ``~``-separated stanzas of four tokens, ``Instruction~Field~Operator~Value``.

    FBV~Title~EQ~Dune~FBVOR~Title~LK~%25Gatsby%25~FSF~Title~DESC~0

Instructions:
    FBV / FBVOR   filter by value, joined with AND / OR
    FBL / FBLOR   filter by comma separated list (IN unless INN is given)
    FSF           sort by field (operator ASC or DESC)
    FOP / FCP     open / close a parenthesised group
"""

import logging
from typing import Dict
from urllib.parse import unquote

from meadow_endpoints.models.query import MeadowQuery
from meadow_endpoints.utils.error_handling import FilterParseError

logger = logging.getLogger(__name__)

OPERATOR_CODES: Dict[str, str] = {
    "EQ": "=",
    "NE": "!=",
    "GT": ">",
    "GE": ">=",
    "LT": "<",
    "LE": "<=",
    "LK": "LIKE",
    "NLK": "NOT LIKE",
    "IN": "IN",
    "INN": "NOT IN"
}

FILTER_PARAMETER = "FilterString"


def _operator(code: str, stanza: str) -> str:
    operator = OPERATOR_CODES.get(code.upper())
    if operator is None:
        raise FilterParseError(f"Invalid filter operator '{code}' in stanza {stanza}")
    return operator


def parse_filter(filter_string: str, query: MeadowQuery) -> MeadowQuery:
    """
    Parse a filter string into ``query`` in place

    Args:
        filter_string: Filter expression in the Meadow filter grammar
        query: Query to add filters and sorts to

    Returns:
        The same query

    Raises:
        FilterParseError: If a stanza carries an unknown operator
    """
    tokens = filter_string.split("~") if filter_string else []

    # Trailing partial stanzas are ignored
    for index in range(0, len(tokens) - 3, 4):
        instruction, field, operator_code, raw_value = tokens[index:index + 4]
        stanza = "~".join(tokens[index:index + 4])
        instruction = instruction.upper()
        field = unquote(field)
        value = unquote(raw_value)

        if instruction in ("FBV", "FBVOR"):
            query.add_filter(
                field,
                value,
                _operator(operator_code, stanza),
                "OR" if instruction == "FBVOR" else "AND",
                FILTER_PARAMETER
            )
        elif instruction in ("FBL", "FBLOR"):
            operator = "NOT IN" if operator_code.upper() == "INN" else "IN"
            query.add_filter(
                field,
                [item for item in value.split(",") if item != ""],
                operator,
                "OR" if instruction == "FBLOR" else "AND",
                FILTER_PARAMETER
            )
        elif instruction == "FSF":
            direction = "Descending" if operator_code.upper() in ("DESC", "DES", "DESCENDING") else "Ascending"
            query.add_sort(field, direction)
        elif instruction == "FOP":
            query.add_filter("", "", "(", "OR" if operator_code.upper() == "OR" else "AND", FILTER_PARAMETER)
        elif instruction == "FCP":
            query.add_filter("", "", ")", "AND", FILTER_PARAMETER)
        else:
            logger.warning(f"Skipping unknown filter instruction in stanza {stanza}")

    return query
