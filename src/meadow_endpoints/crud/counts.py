"""
Count endpoints - Count, CountBy
"""

import logging

from starlette.responses import Response

from meadow_endpoints.crud.reads import add_by_field_filters
from meadow_endpoints.models.context import RequestContext
from meadow_endpoints.services.marshal_service import send_record
from meadow_endpoints.services.pipeline import (
    apply_filter,
    authorize_request,
    check_authorization,
    execute_endpoint,
    run_behavior,
)

logger = logging.getLogger(__name__)


async def build_count_query(context: RequestContext) -> None:
    context.query = context.dal.query


async def count_records(context: RequestContext) -> None:
    context.state["Count"] = await context.dal.do_count(context.query)


def _respond_count(context: RequestContext) -> Response:
    count = context.state.get("Count", 0)
    context.common.log_info(f"Counted {count} records.", context)
    return send_record({"Count": count})


async def do_count(context: RequestContext) -> Response:
    """
    Count the records matching an optional filter

    Count authorizers judge the request as a whole: they run once with no
    active record (``context.record`` and ``context.records`` are None) and
    the count available in ``context.state["Count"]``.
    """
    return await execute_endpoint(
        context,
        "Count",
        [
            build_count_query,
            apply_filter,
            run_behavior("Count-QueryConfiguration"),
            count_records,
            authorize_request("Count"),
            check_authorization
        ],
        "Error retreiving a count.",
        _respond_count
    )


async def do_count_by(context: RequestContext) -> Response:
    """Count the records where a field matches a value"""
    return await execute_endpoint(
        context,
        "CountBy",
        [
            build_count_query,
            add_by_field_filters,
            run_behavior("Count-QueryConfiguration"),
            count_records,
            authorize_request("CountBy"),
            check_authorization
        ],
        "Error retreiving a count by value.",
        _respond_count
    )
