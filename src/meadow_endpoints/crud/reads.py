"""
List read endpoints - Reads, ReadsBy, ReadLite, ReadSelectList, ReadDistinct
"""

import logging
from typing import List

from starlette.responses import Response

from meadow_endpoints.models.context import RequestContext
from meadow_endpoints.services.marshal_service import (
    marshal_distinct_list,
    marshal_lite_list,
    marshal_select_list,
    send_records,
    stream_records_to_response,
)
from meadow_endpoints.services.pipeline import (
    apply_filter,
    authorize_request,
    build_paged_query,
    check_authorization,
    execute_endpoint,
    read_records,
    run_behavior,
)
from meadow_endpoints.utils.error_handling import ClientInputError

logger = logging.getLogger(__name__)

RECORDSET_ERROR = "Error retreiving a recordset."


def _respond_with_stream(context: RequestContext) -> Response:
    records = context.records or []
    context.common.log_info(f"Read a recordset with {len(records)} results.", context)
    return stream_records_to_response(records)


async def do_reads(context: RequestContext) -> Response:
    """Read a filtered, paged list of records"""
    return await execute_endpoint(
        context,
        "Reads",
        [
            build_paged_query,
            apply_filter,
            run_behavior("Reads-QueryConfiguration"),
            run_behavior("Reads-PreAuth"),
            read_records,
            authorize_request("Reads"),
            run_behavior("Reads-PostOperation"),
            check_authorization
        ],
        RECORDSET_ERROR,
        _respond_with_stream
    )


async def add_by_field_filters(context: RequestContext) -> None:
    """Filter on ByField = ByValue, or on each entry of a Filters list"""
    def add_field(by_field, by_value):
        if not by_field:
            raise ClientInputError("A field to read by must be provided.")
        if isinstance(by_value, (list, tuple)):
            context.query.add_filter(by_field, list(by_value), "IN", "AND", "RequestByField")
        else:
            context.query.add_filter(by_field, by_value, "=", "AND", "RequestByField")

    filters = context.params.get("Filters")
    if isinstance(filters, list):
        for by_filter in filters:
            add_field(by_filter.get("ByField"), by_filter.get("ByValue"))
    else:
        add_field(context.params.get("ByField"), context.params.get("ByValue"))


def _respond_reads_by(context: RequestContext) -> Response:
    records = context.records or []
    context.common.log_info(
        f"Read a list of {len(records)} records by {context.params.get('ByField')} = {context.params.get('ByValue')}.",
        context
    )
    return stream_records_to_response(records)


async def do_reads_by(context: RequestContext) -> Response:
    """Read records where a field matches a value (or any of a list of values)"""
    return await execute_endpoint(
        context,
        "ReadsBy",
        [
            build_paged_query,
            add_by_field_filters,
            run_behavior("Reads-QueryConfiguration"),
            run_behavior("Reads-PreAuth"),
            read_records,
            authorize_request("ReadsBy"),
            run_behavior("Reads-PostOperation"),
            check_authorization
        ],
        "Error retreiving records by value.",
        _respond_reads_by
    )


def _respond_lite(context: RequestContext) -> Response:
    lite_list = marshal_lite_list(context)
    # Only the marshalled list leaves the pipeline
    context.records = None
    context.common.log_info(f"Read a recordset lite list with {len(lite_list)} results.", context)
    return send_records(lite_list)


async def do_read_lite(context: RequestContext) -> Response:
    """Read a list of lite records (identifiers plus a templated Value)"""
    return await execute_endpoint(
        context,
        "ReadLite",
        [
            build_paged_query,
            apply_filter,
            run_behavior("Reads-QueryConfiguration"),
            read_records,
            authorize_request("ReadLite"),
            check_authorization
        ],
        RECORDSET_ERROR,
        _respond_lite
    )


def _respond_select_list(context: RequestContext) -> Response:
    select_list = marshal_select_list(context)
    context.records = None
    context.common.log_info(f"Read a select list with {len(select_list)} results.", context)
    return send_records(select_list)


async def do_read_select_list(context: RequestContext) -> Response:
    """Read a {Hash, Value} list for drop-downs"""
    return await execute_endpoint(
        context,
        "ReadSelectList",
        [
            build_paged_query,
            apply_filter,
            run_behavior("Reads-QueryConfiguration"),
            read_records,
            authorize_request("ReadSelectList"),
            check_authorization
        ],
        RECORDSET_ERROR,
        _respond_select_list
    )


def _distinct_columns(context: RequestContext) -> List[str]:
    columns = context.params.get("Columns")
    if isinstance(columns, str):
        columns = columns.split(",")
    if not isinstance(columns, (list, tuple)):
        return []
    return [column.strip() for column in columns if isinstance(column, str) and column.strip()]


async def set_distinct_columns(context: RequestContext) -> None:
    columns = _distinct_columns(context)
    if not columns:
        raise ClientInputError("Columns to distinct on must be provided.")
    context.state["DistinctColumns"] = columns
    context.query.set_distinct(True).set_data_elements(columns)


def _respond_distinct(context: RequestContext) -> Response:
    distinct_list = marshal_distinct_list(context.records, context.state["DistinctColumns"])
    context.records = None
    context.common.log_info(f"Read a distinct list with {len(distinct_list)} results.", context)
    return stream_records_to_response(distinct_list)


async def do_read_distinct(context: RequestContext) -> Response:
    """Read the distinct values of a set of columns"""
    return await execute_endpoint(
        context,
        "ReadDistinct",
        [
            build_paged_query,
            apply_filter,
            set_distinct_columns,
            run_behavior("Reads-QueryConfiguration"),
            run_behavior("Reads-PreAuth"),
            read_records,
            # Shares its permission with Reads
            authorize_request("Reads"),
            check_authorization
        ],
        RECORDSET_ERROR,
        _respond_distinct
    )
