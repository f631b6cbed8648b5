"""
Schema endpoints - Schema, New, Validate
"""

import copy
import logging
from typing import Any, Dict, List

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from starlette.responses import Response

from meadow_endpoints.models.context import RequestContext
from meadow_endpoints.services.marshal_service import send_record
from meadow_endpoints.services.pipeline import (
    authorize_request,
    check_authorization,
    execute_endpoint,
    run_behavior,
)
from meadow_endpoints.utils.error_handling import ClientInputError, DALError

logger = logging.getLogger(__name__)


def validate_record(record: Any, schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a record against a JSON schema, collecting every error

    Args:
        record: Candidate record
        schema: JSON schema (draft picked from ``$schema``, 2020-12 otherwise)

    Returns:
        ``{"Valid": bool, "Errors": [str, ...]}``

    Raises:
        DALError: If the schema itself is invalid
    """
    validator_class = validator_for(schema, default=Draft202012Validator)
    try:
        validator_class.check_schema(schema)
    except SchemaError as e:
        raise DALError(f"Invalid JSON schema: {e.message}")

    errors: List[str] = []
    for error in sorted(validator_class(schema).iter_errors(record), key=lambda e: [str(p) for p in e.path]):
        path = ".".join(str(p) for p in error.path)
        if path:
            errors.append(f"Validation failed at '{path}': {error.message}")
        else:
            errors.append(f"Validation error: {error.message}")

    return {"Valid": not errors, "Errors": errors}


# Schema

async def load_json_schema(context: RequestContext) -> None:
    # Hooks get their own copy to edit
    context.state["JSONSchema"] = copy.deepcopy(context.dal.json_schema)


def _respond_schema(context: RequestContext) -> Response:
    context.common.log_info("Delivered the JSON schema.", context)
    return send_record(context.state.get("JSONSchema"))


async def do_schema(context: RequestContext) -> Response:
    """Deliver the scope's JSON schema"""
    return await execute_endpoint(
        context,
        "Schema",
        [
            load_json_schema,
            run_behavior("Schema-PreOperation"),
            authorize_request("Schema"),
            check_authorization,
            run_behavior("Schema-PostOperation")
        ],
        "Error retreiving the schema.",
        _respond_schema
    )


# New

async def load_default_record(context: RequestContext) -> None:
    context.record = copy.deepcopy(context.dal.default_object)


def _respond_new(context: RequestContext) -> Response:
    context.common.log_info("Delivered a new default record.", context)
    return send_record(context.record if context.record is not None else {})


async def do_new(context: RequestContext) -> Response:
    """Deliver an empty default record for the scope"""
    return await execute_endpoint(
        context,
        "New",
        [
            load_default_record,
            run_behavior("New-PreOperation"),
            authorize_request("New"),
            check_authorization,
            run_behavior("New-PostOperation")
        ],
        "Error creating a new default record.",
        _respond_new
    )


# Validate

async def stage_record_to_validate(context: RequestContext) -> None:
    if not isinstance(context.body, dict):
        raise ClientInputError("You must pass a valid record to validate.")
    context.record = context.body
    await load_json_schema(context)


async def run_validation(context: RequestContext) -> None:
    context.state["Validation"] = validate_record(context.record, context.state["JSONSchema"])


def _respond_validation(context: RequestContext) -> Response:
    validation = context.state.get("Validation") or {"Valid": False, "Errors": []}
    context.common.log_info(f"Validated a record: {'valid' if validation.get('Valid') else 'invalid'}.", context)
    return send_record(validation)


async def do_validate(context: RequestContext) -> Response:
    """Validate the request body against the scope's JSON schema"""
    return await execute_endpoint(
        context,
        "Validate",
        [
            stage_record_to_validate,
            run_behavior("Validate-PreOperation"),
            authorize_request("Validate"),
            check_authorization,
            run_validation,
            run_behavior("Validate-PostOperation")
        ],
        "Error validating a record.",
        _respond_validation
    )
