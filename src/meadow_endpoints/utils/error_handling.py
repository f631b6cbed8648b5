"""
Centralized Error Handling and Logging
Error types raised by pipeline stages, structured error logging, and the
FastAPI exception handlers / request id middleware.
"""

import json
import logging
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from contextvars import ContextVar

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

logger = logging.getLogger(__name__)

UNAUTHORIZED_ACCESS_MESSAGE = "UNAUTHORIZED ACCESS IS NOT ALLOWED"


class MeadowError(Exception):
    """Base error for every pipeline failure; carries a client-facing code"""

    default_code = 500

    def __init__(self, message: str, code: Optional[int] = None, reason: Any = None):
        self.message = message
        self.code = code if code is not None else self.default_code
        self.reason = reason if reason is not None else message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"Code": self.code, "Message": self.message}


class ClientInputError(MeadowError):
    """Bad or missing request parameters"""
    default_code = 400


class FilterParseError(ClientInputError):
    """A filter expression could not be parsed"""


class NotLoggedInError(MeadowError):
    default_code = 401


class RecordNotFoundError(MeadowError):
    default_code = 404


class UnauthorizedAccessError(MeadowError):
    """Authorization denied; always the same code and message"""
    default_code = 405

    def __init__(self):
        super().__init__(UNAUTHORIZED_ACCESS_MESSAGE)


class BehaviorError(MeadowError):
    """An injected behavior reported a failure"""


class AuthorizerError(MeadowError):
    """An authorizer predicate reported a failure"""


class DALError(MeadowError):
    """Storage collaborator failure"""


def coerce_error(value: Any, error_class=MeadowError) -> MeadowError:
    """
    Convert a failure value reported by a hook or collaborator into a MeadowError

    Args:
        value: A MeadowError, a {"Code", "Message"} mapping, a string, an
            exception, or any other truthy value
        error_class: Class used when the value is not already a MeadowError

    Returns:
        MeadowError whose ``reason`` is the original value
    """
    if isinstance(value, MeadowError):
        return value
    if isinstance(value, dict):
        message = value.get("Message") or value.get("Error") or json.dumps(value, default=str)
        code = value.get("Code")
        return error_class(str(message), code=code if isinstance(code, int) else None, reason=value)
    if isinstance(value, BaseException):
        return error_class(str(value) or type(value).__name__, reason=value)
    return error_class(str(value), reason=value)


class ErrorHandlingConfig:
    """Centralized configuration for error handling behavior"""

    SANITIZE_SENSITIVE_FIELDS = True
    SENSITIVE_FIELD_PATTERNS = [
        'password', 'token', 'secret', 'authorization', 'bearer', 'credential', 'api_key'
    ]
    MAX_BODY_LOG_SIZE = 5000

    @classmethod
    def is_sensitive_field(cls, field_name: str) -> bool:
        field_lower = field_name.lower()
        return any(pattern in field_lower for pattern in cls.SENSITIVE_FIELD_PATTERNS)

    @classmethod
    def sanitize_data(cls, data: Union[Dict, str, Any]) -> Any:
        """Recursively sanitize sensitive data from logs"""
        if not cls.SANITIZE_SENSITIVE_FIELDS:
            return data

        if isinstance(data, dict):
            return {
                key: "***REDACTED***" if cls.is_sensitive_field(str(key)) else cls.sanitize_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, list):
            return [cls.sanitize_data(item) for item in data]
        elif isinstance(data, str) and len(data) > cls.MAX_BODY_LOG_SIZE:
            return data[:cls.MAX_BODY_LOG_SIZE] + "...[TRUNCATED]"
        else:
            return data


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StructuredLogger:
    """Structured logging with consistent format and context"""

    @staticmethod
    def log_error(
        error_type: str,
        message: str,
        request: Optional[Request] = None,
        exception: Optional[BaseException] = None,
        extra_context: Optional[Dict] = None,
        include_traceback: bool = True,
        level: int = logging.ERROR
    ) -> str:
        """Log a structured error entry and return its trace id"""
        trace_id = request_id_var.get('') or str(uuid.uuid4())[:8]

        log_entry = {
            "timestamp": _utc_now(),
            "trace_id": trace_id,
            "error_type": error_type,
            "message": message,
            "level": logging.getLevelName(level)
        }

        if request:
            headers = dict(request.headers)
            log_entry["request"] = {
                "method": request.method,
                "url": str(request.url),
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "headers": ErrorHandlingConfig.sanitize_data(headers),
                "client_ip": request.client.host if request.client else None
            }

        if exception:
            log_entry["exception"] = {
                "type": type(exception).__name__,
                "details": str(exception)
            }
            if isinstance(exception, MeadowError):
                log_entry["exception"]["code"] = exception.code
            if include_traceback and exception.__traceback__ is not None:
                log_entry["exception"]["traceback"] = "".join(
                    traceback.format_exception(type(exception), exception, exception.__traceback__)
                )

        if extra_context:
            log_entry["context"] = ErrorHandlingConfig.sanitize_data(extra_context)

        logger.log(level, json.dumps(log_entry, default=str))

        return trace_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a trace id to every request and echoes it in X-Trace-ID"""

    async def dispatch(self, request: Request, call_next):
        trace_id = str(uuid.uuid4())[:8]
        request_id_var.set(trace_id)
        request.state.trace_id = trace_id

        response = await call_next(request)
        response.headers["X-Trace-ID"] = trace_id
        return response


def error_body(message: Any, code: int, trace_id: Optional[str] = None) -> Dict[str, Any]:
    """Wire shape shared by pipeline and application level errors"""
    return {
        "Error": message,
        "ErrorCode": code,
        "RequestID": trace_id or request_id_var.get('')
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions raised outside the endpoint pipelines (unknown routes and such)"""
    if exc.status_code >= 500:
        StructuredLogger.log_error(
            f"http_{exc.status_code}",
            f"HTTP {exc.status_code}: {exc.detail}",
            request=request,
            exception=exc
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, exc.status_code, getattr(request.state, "trace_id", None)),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle FastAPI validation errors (HTTP 422)"""
    problems = [
        f"{' -> '.join(str(loc) for loc in error.get('loc', []))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    ]

    trace_id = StructuredLogger.log_error(
        "validation_error_422",
        f"Request validation failed: {len(problems)} problems",
        request=request,
        extra_context={"validation_errors": problems},
        include_traceback=False,
        level=logging.WARNING
    )

    content = error_body("Request validation failed", 422, trace_id)
    content["Errors"] = problems
    return JSONResponse(status_code=422, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions without exposing internals"""
    trace_id = StructuredLogger.log_error(
        "internal_server_error",
        f"Unhandled exception: {str(exc)}",
        request=request,
        exception=exc
    )
    return JSONResponse(status_code=500, content=error_body("An unexpected error occurred", 500, trace_id))


def setup_error_handling(app):
    """Add the trace id middleware and the application level exception handlers"""
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Meadow error handling initialized")
