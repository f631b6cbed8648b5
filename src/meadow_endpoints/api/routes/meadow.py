"""
Meadow route table - maps the HTTP surface of one scope onto its operations
"""

import json
import logging
from typing import Any, List, Tuple

from fastapi import APIRouter, Request

from meadow_endpoints.config.settings import MEADOW_API_VERSION
from meadow_endpoints.models.session import anonymous_session

logger = logging.getLogger(__name__)


def route_table(scope: str) -> List[Tuple[str, str, str]]:
    """
    (method, path, operation) for a scope, most specific paths first

    Routes are matched in order, so fixed segments (Count, By, Lite,
    Distinct, Schema) must come before the parameterised list paths.
    """
    plural = f"/{scope}s"
    single = f"/{scope}"
    select = f"/{scope}Select"

    routes = [
        ("GET", f"{plural}/Count/By/{{ByField}}/{{ByValue}}", "CountBy"),
        ("GET", f"{plural}/Count/FilteredTo/{{Filter}}", "Count"),
        ("GET", f"{plural}/Count", "Count"),

        ("GET", f"{plural}/By/{{ByField}}/{{ByValue}}/{{Begin}}/{{Cap}}", "ReadsBy"),
        ("GET", f"{plural}/By/{{ByField}}/{{ByValue}}", "ReadsBy"),

        ("GET", f"{plural}/Lite/FilteredTo/{{Filter}}/{{Begin}}/{{Cap}}", "ReadLite"),
        ("GET", f"{plural}/Lite/FilteredTo/{{Filter}}", "ReadLite"),
        ("GET", f"{plural}/Lite/{{Begin}}/{{Cap}}", "ReadLite"),
        ("GET", f"{plural}/Lite", "ReadLite"),

        ("GET", f"{plural}/Distinct/{{Columns}}/FilteredTo/{{Filter}}/{{Begin}}/{{Cap}}", "ReadDistinct"),
        ("GET", f"{plural}/Distinct/{{Columns}}/FilteredTo/{{Filter}}", "ReadDistinct"),
        ("GET", f"{plural}/Distinct/{{Columns}}/{{Begin}}/{{Cap}}", "ReadDistinct"),
        ("GET", f"{plural}/Distinct/{{Columns}}", "ReadDistinct"),

        ("GET", f"{plural}/FilteredTo/{{Filter}}/{{Begin}}/{{Cap}}", "Reads"),
        ("GET", f"{plural}/FilteredTo/{{Filter}}", "Reads"),
        ("GET", f"{plural}/{{Begin}}/{{Cap}}", "Reads"),
        ("GET", plural, "Reads"),

        ("GET", f"{select}/FilteredTo/{{Filter}}/{{Begin}}/{{Cap}}", "ReadSelectList"),
        ("GET", f"{select}/FilteredTo/{{Filter}}", "ReadSelectList"),
        ("GET", f"{select}/{{Begin}}/{{Cap}}", "ReadSelectList"),
        ("GET", select, "ReadSelectList"),

        ("GET", f"{single}/Schema/New", "New"),
        ("POST", f"{single}/Schema/Validate", "Validate"),
        ("GET", f"{single}/Schema", "Schema"),

        ("GET", f"{single}/{{IDRecord}}", "Read"),
        ("POST", single, "Create"),
        ("PUT", single, "Update"),
        ("DELETE", f"{single}/{{IDRecord}}", "Delete"),
        ("DELETE", single, "Delete")
    ]
    return routes


async def read_body(request: Request) -> Any:
    """Parsed JSON body, or None when there is none (or it is not JSON)"""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning(f"Ignoring non-JSON body on {request.method} {request.url.path}")
        return None


def build_router(endpoints) -> APIRouter:
    """
    Build the API router for a MeadowEndpoints instance

    Args:
        endpoints: MeadowEndpoints for one scope

    Returns:
        APIRouter with every route of the scope under ``/<version>``
    """
    router = APIRouter(prefix=f"/{MEADOW_API_VERSION}")

    def bind(operation: str):
        async def endpoint(request: Request):
            params = dict(request.query_params)
            params.update(request.path_params)

            context = endpoints.create_context(
                user_session=getattr(request.state, "user_session", None) or anonymous_session(),
                params=params,
                body=await read_body(request) if request.method in ("POST", "PUT", "DELETE") else None,
                url=str(request.url),
                request_id=getattr(request.state, "trace_id", "")
            )
            return await endpoints.invoke(operation, context)

        endpoint.__name__ = f"{endpoints.scope}_{operation}"
        return endpoint

    for method, path, operation in route_table(endpoints.scope):
        router.add_api_route(
            path,
            bind(operation),
            methods=[method],
            name=f"{endpoints.scope}-{operation}",
            include_in_schema=True
        )

    logger.info(f"Registered {len(router.routes)} routes for {endpoints.scope}")
    return router
