"""API middleware for client identity, logging, and error handling."""
import re
import time
import uuid
from typing import Any, Callable, Dict

import structlog
from fastapi import Request, Response, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.exceptions import BaseAPIException
from ..core.logging import RequestLogger
from ..schemas.common import ErrorBody

CLIENT_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def error_response(status_code: int, error: Any, error_code: str, details: Dict[str, Any] = None) -> JSONResponse:
    body = ErrorBody(error=error, error_code=error_code, details=details or {})
    return JSONResponse(status_code=status_code, content=body.model_dump())


def api_error_response(exc: BaseAPIException) -> JSONResponse:
    """Render an application exception as the standard error payload."""
    return error_response(exc.status_code, exc.message, exc.error_code, exc.details)


class ClientIdentityMiddleware(BaseHTTPMiddleware):
    """Assign each browser a stable client id through a cookie.

    The id selects the client's private storage namespace.
    """

    def __init__(self, app, cookie_name: str = "kajopo_client", max_age: int = 60 * 60 * 24 * 365):
        super().__init__(app)
        self.cookie_name = cookie_name
        self.max_age = max_age

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_id = request.cookies.get(self.cookie_name)
        issued = False
        if not client_id or not CLIENT_ID_PATTERN.match(client_id):
            client_id = uuid.uuid4().hex
            issued = True
        request.state.client_id = client_id

        response = await call_next(request)

        if issued:
            response.set_cookie(
                self.cookie_name,
                client_id,
                max_age=self.max_age,
                httponly=True,
                samesite="lax",
            )
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        client_id = getattr(request.state, "client_id", None)

        # Log request
        start_time = time.time()
        RequestLogger.log_request(
            method=request.method,
            path=str(request.url.path),
            client_id=client_id,
            request_id=request_id,
            extra_data={
                "query_params": dict(request.query_params),
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent")
            }
        )

        response = await call_next(request)
        response_time_ms = (time.time() - start_time) * 1000

        RequestLogger.log_response(
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            response_time_ms=response_time_ms,
            client_id=client_id,
            request_id=request_id
        )

        response.headers["X-Request-ID"] = request_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for handling exceptions and returning appropriate responses."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseAPIException as e:
            return api_error_response(e)

        except HTTPException as e:
            return error_response(e.status_code, e.detail, "HTTP_EXCEPTION")

        except Exception as e:
            structlog.get_logger("api.error").exception(
                "Unhandled error",
                method=request.method,
                path=str(request.url.path),
            )
            return error_response(
                500,
                "Internal server error",
                "INTERNAL_ERROR",
                {"message": str(e)} if self.debug else {},
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
