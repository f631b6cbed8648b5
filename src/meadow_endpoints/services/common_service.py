"""
Common services shared by every endpoint - endpoint level authorization,
error responses and request summary logging
"""

import json
import logging
from typing import Any, Optional

from fastapi.responses import JSONResponse

from meadow_endpoints.utils.error_handling import (
    NotLoggedInError,
    StructuredLogger,
    UnauthorizedAccessError,
    coerce_error,
    error_body,
)

logger = logging.getLogger(__name__)


class CommonServices:
    """Services every endpoint pipeline relies on"""

    def authorize_endpoint(self, context) -> Optional[JSONResponse]:
        """
        Check the caller against the endpoint's required role level

        Args:
            context: RequestContext with ``endpoint_authorization_requirement`` set

        Returns:
            None when the caller may use the endpoint, otherwise the error
            response that must be sent (the pipeline stops there)
        """
        requirement = context.endpoint_authorization_requirement
        if requirement < 0:
            return None

        session = context.user_session
        if not session.logged_in:
            return self.send_coded_error(
                "You must be logged in to access this resource.",
                NotLoggedInError("You must be logged in to access this resource."),
                context
            )

        if session.user_role_index < requirement:
            logger.info(
                f"Endpoint {context.action} requires role index {requirement}, "
                f"caller has {session.user_role_index}"
            )
            return self.send_coded_error(
                "You do not have sufficient privileges to access this resource.",
                UnauthorizedAccessError(),
                context
            )

        return None

    def send_coded_error(self, message: str, error: Any, context) -> JSONResponse:
        """
        Log a pipeline failure and build the client error response

        Args:
            message: Fixed, operation level message (e.g. 'Error retreiving a recordset.')
            error: The stage failure (MeadowError, mapping, string or exception)
            context: RequestContext of the failed request

        Returns:
            JSONResponse with ``Error``, ``ErrorCode``, ``Message`` and ``RequestID``
        """
        meadow_error = coerce_error(error)
        code = meadow_error.code

        StructuredLogger.log_error(
            f"api_error_{code}",
            f"{message} {meadow_error.message}",
            exception=meadow_error if code >= 500 else None,
            extra_context=dict(context.log_fields(), Parameters=context.params),
            include_traceback=code >= 500,
            level=logging.ERROR if code >= 500 else logging.WARNING
        )

        return JSONResponse(
            status_code=code if 400 <= code < 600 else 500,
            content={
                "Error": meadow_error.message,
                "ErrorCode": code,
                "Message": message,
                "RequestID": context.request_id
            }
        )

    def send_error(self, message: str, context, status_code: int = 500) -> JSONResponse:
        """Build a plain error response with no underlying error attached"""
        StructuredLogger.log_error(
            f"api_error_{status_code}",
            message,
            extra_context=context.log_fields(),
            include_traceback=False,
            level=logging.WARNING
        )
        return JSONResponse(status_code=status_code, content=error_body(message, status_code, context.request_id))

    def log_info(self, message: str, context) -> None:
        """Log an info summary line with the request correlation fields"""
        logger.info(f"{message} {json.dumps(context.log_fields(), default=str)}")
