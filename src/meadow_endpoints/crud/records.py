"""
Single record endpoints - Create, Read, Update, Delete
"""

import logging
from typing import Any

from starlette.responses import Response

from meadow_endpoints.models.context import RequestContext
from meadow_endpoints.services.marshal_service import send_record
from meadow_endpoints.services.pipeline import (
    EndpointComplete,
    authorize_request,
    check_authorization,
    execute_endpoint,
    parse_int_param,
    run_behavior,
)
from meadow_endpoints.utils.error_handling import ClientInputError, RecordNotFoundError

logger = logging.getLogger(__name__)


def _identifier_value(value: Any) -> Any:
    """Numeric identifiers arrive as URL strings"""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


def _filter_to_record(context: RequestContext, record_id: Any) -> None:
    """Point the query at one record by identifier (or GUID for non-numeric ids)"""
    dal = context.dal
    record_id = _identifier_value(record_id)
    if isinstance(record_id, str) and dal.default_guid_identifier:
        context.query.add_filter(dal.default_guid_identifier, record_id, "=", "AND", "RequestDefaultIdentifier")
    else:
        context.query.add_filter(dal.default_identifier, record_id, "=", "AND", "RequestDefaultIdentifier")


# Create

async def validate_create_body(context: RequestContext) -> None:
    if not isinstance(context.body, dict):
        raise ClientInputError("You must pass a valid record to create.")
    context.record = context.body
    context.query = context.dal.query.add_record(context.record).set_id_user(context.user_session.user_id)


async def create_record(context: RequestContext) -> None:
    context.record = await context.dal.do_create(context.query)


def _respond_record(message: str):
    def respond(context: RequestContext) -> Response:
        context.common.log_info(message, context)
        return send_record(context.record)
    return respond


async def do_create(context: RequestContext) -> Response:
    """Create a record from the request body"""
    return await execute_endpoint(
        context,
        "Create",
        [
            validate_create_body,
            run_behavior("Create-PreOperation"),
            authorize_request("Create"),
            # Nothing is written unless the request is authorized
            check_authorization,
            create_record,
            run_behavior("Create-PostOperation")
        ],
        "Error creating a record.",
        _respond_record("Created a record.")
    )


# Read

async def build_read_query(context: RequestContext) -> None:
    record_id = context.params.get("IDRecord")
    if record_id is None or record_id == "":
        raise ClientInputError("A record identifier must be provided.")
    context.query = context.dal.query
    _filter_to_record(context, record_id)


async def read_record(context: RequestContext) -> None:
    context.record = await context.dal.do_read(context.query)


async def end_when_record_missing(context: RequestContext) -> None:
    """A missing record answers {} before any authorizer or later hook sees it"""
    if context.record is None:
        context.common.log_info("Record not found", context)
        raise EndpointComplete(send_record({}))


def _respond_read(context: RequestContext) -> Response:
    context.common.log_info(f"Read a record with ID {context.params.get('IDRecord')}.", context)
    return send_record(context.record)


async def do_read(context: RequestContext) -> Response:
    """Read one record by identifier; a missing record answers {}"""
    return await execute_endpoint(
        context,
        "Read",
        [
            build_read_query,
            run_behavior("Read-QueryConfiguration"),
            run_behavior("Read-PreAuth"),
            read_record,
            end_when_record_missing,
            authorize_request("Read"),
            run_behavior("Read-PostOperation"),
            check_authorization
        ],
        "Error retreiving a record.",
        _respond_read
    )


# Update

async def build_update_query(context: RequestContext) -> None:
    body = context.body
    dal = context.dal
    if not isinstance(body, dict) or body.get(dal.default_identifier) in (None, ""):
        raise ClientInputError("You must pass a valid record with a valid ID to update.")

    record_id = _identifier_value(body[dal.default_identifier])
    context.query = dal.query.add_filter(dal.default_identifier, record_id, "=", "AND", "RequestDefaultIdentifier")


async def load_record_to_update(context: RequestContext) -> None:
    existing = await context.dal.do_read(context.query)
    if existing is None:
        raise RecordNotFoundError(
            f"No record found to update with ID {context.body.get(context.dal.default_identifier)}."
        )

    # Authorizers see the stored record, not the submitted one
    context.state["OriginalRecord"] = existing
    context.record = existing


async def stage_update_record(context: RequestContext) -> None:
    context.record = context.body
    context.query.add_record(context.record).set_id_user(context.user_session.user_id)


async def update_record(context: RequestContext) -> None:
    context.record = await context.dal.do_update(context.query)


async def do_update(context: RequestContext) -> Response:
    """Update a record from the request body (must carry the identifier)"""
    return await execute_endpoint(
        context,
        "Update",
        [
            build_update_query,
            run_behavior("Update-QueryConfiguration"),
            load_record_to_update,
            authorize_request("Update"),
            check_authorization,
            stage_update_record,
            run_behavior("Update-PreOperation"),
            update_record,
            run_behavior("Update-PostOperation")
        ],
        "Error updating a record.",
        _respond_record("Updated a record.")
    )


# Delete

async def load_record_to_delete(context: RequestContext) -> None:
    dal = context.dal
    record_id = context.params.get("IDRecord")
    if record_id in (None, "") and isinstance(context.body, dict):
        record_id = context.body.get(dal.default_identifier)
    if parse_int_param(record_id) is None and not (isinstance(record_id, str) and record_id and dal.default_guid_identifier):
        raise ClientInputError("You must pass a valid record ID to delete.")

    context.query = dal.query
    _filter_to_record(context, record_id)

    existing = await dal.do_read(context.query)
    if existing is None:
        raise RecordNotFoundError(f"No record found to delete with ID {record_id}.")
    context.record = existing
    context.query.set_id_user(context.user_session.user_id)


async def delete_record(context: RequestContext) -> None:
    context.state["Count"] = await context.dal.do_delete(context.query)


def _respond_delete(context: RequestContext) -> Response:
    count = context.state.get("Count", 0)
    context.common.log_info(f"Deleted {count} records with ID {context.params.get('IDRecord')}.", context)
    return send_record({"Count": count})


async def do_delete(context: RequestContext) -> Response:
    """Delete one record by identifier"""
    return await execute_endpoint(
        context,
        "Delete",
        [
            load_record_to_delete,
            authorize_request("Delete"),
            check_authorization,
            run_behavior("Delete-PreOperation"),
            delete_record,
            run_behavior("Delete-PostOperation")
        ],
        "Error deleting a record.",
        _respond_delete
    )
