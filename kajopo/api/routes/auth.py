"""Authentication and session routes."""
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError

from ...schemas.auth import (
    AccountResponse, AuthResponse, ExtendSessionRequest,
    LoginRequest, RegisterRequest, SessionResponse,
)
from ...schemas.common import SuccessResponse
from ...core.auth import AuthFacade, AuthOutcome, AuthResult
from ...core.container import ApplicationContainer
from ...core.exceptions import (
    AccountLockedError, AuthenticationError, BackendUnavailableError,
    BaseAPIException, ConflictError, ExternalServiceError, ValidationError,
)
from ...core.security import (
    get_admin_auth, get_admin_session, get_container,
    get_user_auth, get_user_session,
)
from ...core.session import SessionRecord
from .pages import render_login, safe_return_path

router = APIRouter(prefix="/auth", tags=["Authentication"])

_FAILURES = {
    AuthOutcome.VALIDATION_FAILED: ValidationError,
    AuthOutcome.ACCOUNT_LOCKED: AccountLockedError,
    AuthOutcome.BACKEND_UNAVAILABLE: BackendUnavailableError,
    AuthOutcome.INVALID_CREDENTIALS: AuthenticationError,
    AuthOutcome.ACCOUNT_EXISTS: ConflictError,
    AuthOutcome.REGISTRATION_FAILED: ExternalServiceError,
}


def raise_for_result(result: AuthResult) -> None:
    """Turn a failed façade result into the matching API exception."""
    if result.success:
        return
    details = {"outcome": result.outcome.value}
    if result.errors:
        details["fields"] = result.errors
    error_class = _FAILURES.get(result.outcome)
    if error_class is None:
        raise BaseAPIException(result.message, status_code=500, error_code=result.outcome.value, details=details)
    raise error_class(result.message, details=details)


def build_session_response(session: SessionRecord, container: ApplicationContainer) -> SessionResponse:
    remaining = session.remaining(container.clock.now())
    return SessionResponse(
        session_id=session.session_id,
        scope=session.scope,
        created_at=session.created_at,
        issued_at=session.issued_at,
        expires_at=session.expires_at,
        remember_me=session.remember_me,
        remaining_seconds=max(0, int(remaining.total_seconds())),
        permissions=list(container.permissions.permissions_for(session)),
        account=AccountResponse.model_validate(session.account),
    )


def _auth_response(result: AuthResult, container: ApplicationContainer) -> AuthResponse:
    raise_for_result(result)
    return AuthResponse(
        outcome=result.outcome.value,
        message=result.message,
        session=build_session_response(result.session, container),
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    request: RegisterRequest,
    auth: AuthFacade = Depends(get_user_auth),
    container: ApplicationContainer = Depends(get_container),
):
    """Register a seeker or provider account and sign it in."""
    result = await auth.register(
        request.model_dump(exclude={"remember_me"}),
        remember_me=request.remember_me,
    )
    return _auth_response(result, container)


LOGIN_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "application/json": {"schema": LoginRequest.model_json_schema()},
            "application/x-www-form-urlencoded": {"schema": LoginRequest.model_json_schema()},
        },
    }
}

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def failure_status(result: AuthResult) -> int:
    error_class = _FAILURES.get(result.outcome)
    return error_class(result.message).status_code if error_class else 500


async def _json_login(request: Request) -> LoginRequest:
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON or form data")
    try:
        return LoginRequest.model_validate(payload)
    except PydanticValidationError as exc:
        fields = {}
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"]) or "body"
            fields.setdefault(name, []).append(error["msg"])
        raise ValidationError("Invalid login request", details={"fields": fields})


async def _login(request: Request, auth: AuthFacade, container: ApplicationContainer, landing: str):
    """Sign in from a JSON body or from the login page's form.

    Form posts are answered with a redirect to the ``return`` path on success
    and with the login page on failure.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(FORM_CONTENT_TYPES):
        credentials = await _json_login(request)
        result = await auth.login(credentials.email, credentials.password, remember_me=credentials.remember_me)
        return _auth_response(result, container)

    form = await request.form()
    return_url = form.get("return")
    result = await auth.login(
        form.get("email") or "",
        form.get("password") or "",
        remember_me=form.get("remember_me") is not None,
    )
    if result.success:
        return RedirectResponse(safe_return_path(return_url, landing), status_code=303)
    return render_login(auth.scope, return_url, error=result.message, status_code=failure_status(result))


@router.post("/login", response_model=AuthResponse, openapi_extra=LOGIN_BODY)
async def login(
    request: Request,
    auth: AuthFacade = Depends(get_user_auth),
    container: ApplicationContainer = Depends(get_container),
):
    """Sign in a seeker or provider."""
    return await _login(request, auth, container, landing="/dashboard")


@router.post("/admin/login", response_model=AuthResponse, openapi_extra=LOGIN_BODY)
async def admin_login(
    request: Request,
    auth: AuthFacade = Depends(get_admin_auth),
    container: ApplicationContainer = Depends(get_container),
):
    """Sign in an administrator."""
    return await _login(request, auth, container, landing="/admin/dashboard")


@router.post("/logout", response_model=SuccessResponse)
async def logout(auth: AuthFacade = Depends(get_user_auth)):
    """Sign out; the local session is always cleared."""
    result = await auth.logout()
    raise_for_result(result)
    return SuccessResponse(message=result.message)


@router.post("/admin/logout", response_model=SuccessResponse)
async def admin_logout(auth: AuthFacade = Depends(get_admin_auth)):
    """Sign out an administrator."""
    result = await auth.logout()
    raise_for_result(result)
    return SuccessResponse(message=result.message)


@router.get("/me", response_model=AccountResponse)
async def me(session: SessionRecord = Depends(get_user_session)):
    """Return the signed-in account."""
    return AccountResponse.model_validate(session.account)


@router.get("/session", response_model=SessionResponse)
async def current_session(
    session: SessionRecord = Depends(get_user_session),
    container: ApplicationContainer = Depends(get_container),
):
    """Return the user session and its remaining lifetime."""
    return build_session_response(session, container)


@router.get("/admin/session", response_model=SessionResponse)
async def current_admin_session(
    session: SessionRecord = Depends(get_admin_session),
    container: ApplicationContainer = Depends(get_container),
):
    """Return the admin session and its remaining lifetime."""
    return build_session_response(session, container)


async def _extend(
    auth: AuthFacade,
    body: Optional[ExtendSessionRequest],
    container: ApplicationContainer,
) -> SessionResponse:
    extra = timedelta(hours=body.hours) if body and body.hours is not None else None
    session = await auth.extend_session(extra)
    if session is None:
        raise AuthenticationError("Please log in to continue")
    return build_session_response(session, container)


@router.post("/session/extend", response_model=SessionResponse)
async def extend_session(
    body: Optional[ExtendSessionRequest] = None,
    auth: AuthFacade = Depends(get_user_auth),
    container: ApplicationContainer = Depends(get_container),
):
    """Push the user session expiry forward, capped at its full lifetime."""
    return await _extend(auth, body, container)


@router.post("/admin/session/extend", response_model=SessionResponse)
async def extend_admin_session(
    body: Optional[ExtendSessionRequest] = None,
    auth: AuthFacade = Depends(get_admin_auth),
    container: ApplicationContainer = Depends(get_container),
):
    """Push the admin session expiry forward, capped at its full lifetime."""
    return await _extend(auth, body, container)
