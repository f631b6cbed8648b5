"""
Endpoint pipeline - runs an operation's ordered stages against one request context

Every endpoint operation is a list of stages. Stages run strictly in order;
the first one to raise aborts the rest and the request gets exactly one
error response. When every stage succeeds the operation's responder builds
the single success response.
"""

import logging
import re
from typing import Any, Awaitable, Callable, List, Optional

from starlette.responses import Response

from meadow_endpoints.models.context import RequestContext
from meadow_endpoints.services.filter_parser import parse_filter
from meadow_endpoints.utils.error_handling import (
    DALError,
    MeadowError,
    UnauthorizedAccessError,
    coerce_error,
)

logger = logging.getLogger(__name__)

Stage = Callable[[RequestContext], Awaitable[None]]
Responder = Callable[[RequestContext], Response]


class EndpointComplete(Exception):
    """Raised by a stage that has settled the response; later stages are skipped"""

    def __init__(self, response: Response):
        self.response = response
        super().__init__("endpoint complete")


_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")


def parse_int_param(value: Any) -> Optional[int]:
    """Read an integer paging parameter from a string or number; None when unusable"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INTEGER.match(value)
        if match:
            return int(match.group(1))
    return None


async def run_stages(context: RequestContext, stages: List[Stage]) -> None:
    for stage in stages:
        logger.debug(f"{context.action}: stage {getattr(stage, '__name__', stage)}")
        await stage(context)


async def execute_endpoint(
    context: RequestContext,
    operation: str,
    stages: List[Stage],
    error_message: str,
    respond: Responder
) -> Response:
    """
    Run one endpoint operation

    Args:
        context: Fresh RequestContext for this request
        operation: Operation name; selects the endpoint authorization level
        stages: Ordered stages to run
        error_message: Fixed message sent with any stage failure
        respond: Builds the success response from the context

    Returns:
        The single response for this request
    """
    context.operation = operation
    context.endpoint_authorization_requirement = context.authorization_levels.level_for(operation)

    denied = context.common.authorize_endpoint(context)
    if denied is not None:
        # The error response is already built; nothing else runs
        return denied

    try:
        await run_stages(context, stages)
        return respond(context)
    except EndpointComplete as done:
        return done.response
    except MeadowError as e:
        context.clear_records()
        return context.common.send_coded_error(error_message, e, context)
    except Exception as e:
        logger.error(f"{context.action} failed: {e}", exc_info=True)
        context.clear_records()
        return context.common.send_coded_error(error_message, coerce_error(e, DALError), context)


# Shared stages

def run_behavior(name: str) -> Stage:
    """Stage running the behavior hook ``name``"""
    async def behavior_stage(context: RequestContext) -> None:
        await context.behaviors.run_behavior(name, context)
    behavior_stage.__name__ = f"behavior[{name}]"
    return behavior_stage


def authorize_request(endpoint_hash: str) -> Stage:
    """Stage running the role's authorizers for ``endpoint_hash``"""
    async def authorize_stage(context: RequestContext) -> None:
        await context.authorizers.authorize_request(endpoint_hash, context)
    authorize_stage.__name__ = f"authorize[{endpoint_hash}]"
    return authorize_stage


async def check_authorization(context: RequestContext) -> None:
    """Fail with the fixed unauthorized error if anything denied the request"""
    if not context.meadow_authorization:
        raise UnauthorizedAccessError()


async def build_paged_query(context: RequestContext) -> None:
    """Start a fresh query with Begin / Cap paging from the request parameters"""
    query = context.dal.query

    begin = parse_int_param(context.params.get("Begin"))
    cap = parse_int_param(context.params.get("Cap"))
    if cap is None or cap < 0:
        cap = context.default_max_cap

    context.query = query.set_cap(cap).set_begin(begin)


async def apply_filter(context: RequestContext) -> None:
    """Add the request's Filter: a filter string, or pre-built filter clauses"""
    filter_value = context.params.get("Filter")
    if isinstance(filter_value, str):
        if filter_value:
            parse_filter(filter_value, context.query)
    elif filter_value:
        context.query.set_filter(filter_value)


async def read_records(context: RequestContext) -> None:
    """Execute the query; a missing result is an empty set"""
    records = await context.dal.do_reads(context.query)
    context.records = list(records) if records else []
