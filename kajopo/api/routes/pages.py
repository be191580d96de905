"""Login entry points and guarded pages."""
import html
from typing import Iterable, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from ...core.auth import AuthFacade
from ...core.notify import RecordingNavigator, StoredNotifier
from ...core.permissions import ROLE_NAMES
from ...core.security import get_admin_auth, get_navigator, get_notifier, get_user_auth
from ...services.accounts import display_name

router = APIRouter(tags=["Pages"])

ADMIN_AREA_PERMISSIONS = ("users", "opportunities", "applications", "analytics")

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
{head}<title>{title} | Kájọpọ̀ Connect</title>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""


def render_page(
    title: str,
    body: str,
    refresh: Optional[str] = None,
    delay: float = 0,
    status_code: int = 200,
) -> HTMLResponse:
    head = ""
    if refresh is not None:
        head = f'<meta http-equiv="refresh" content="{int(delay)};url={html.escape(refresh, quote=True)}">\n'
    return HTMLResponse(_PAGE.format(head=head, title=html.escape(title), body=body), status_code=status_code)


async def guard_response(navigator: RecordingNavigator, notifier: StoredNotifier) -> Response:
    """Turn a navigation requested by a guard into an HTTP response.

    Immediate navigations become redirects; delayed ones render the queued
    notices and refresh to the target once the delay has passed.
    """
    if not navigator.delay:
        return RedirectResponse(navigator.target, status_code=303)

    notices = await notifier.drain()
    items = "\n".join(
        f'<p class="notice notice-{html.escape(n.level)}">{html.escape(n.message)}</p>' for n in notices
    )
    return render_page(
        "Access denied",
        items,
        refresh=navigator.target,
        delay=navigator.delay.total_seconds(),
    )


def safe_return_path(value: Optional[str], default: str) -> str:
    """Only local absolute paths are followed after a login."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return default
    return value


def _login_form(action: str, return_url: Optional[str], error: Optional[str] = None) -> str:
    hidden = ""
    if return_url:
        hidden = f'<input type="hidden" name="return" value="{html.escape(return_url, quote=True)}">'
    notice = ""
    if error:
        notice = f'<p class="notice notice-error">{html.escape(error)}</p>\n'
    return (
        f"{notice}"
        f'<form method="post" action="{action}">\n'
        '<input type="email" name="email" placeholder="Email">\n'
        '<input type="password" name="password" placeholder="Password">\n'
        '<label><input type="checkbox" name="remember_me"> Remember me</label>\n'
        f"{hidden}\n"
        '<button type="submit">Sign in</button>\n'
        "</form>"
    )


LOGIN_FORMS = {
    "user": ("Sign in", "/api/v1/auth/login"),
    "admin": ("Administrator sign in", "/api/v1/auth/admin/login"),
}


def render_login(
    scope: str,
    return_url: Optional[str] = None,
    error: Optional[str] = None,
    status_code: int = 200,
) -> HTMLResponse:
    title, action = LOGIN_FORMS[scope]
    return render_page(title, _login_form(action, return_url, error), status_code=status_code)


@router.get("/login", response_class=HTMLResponse)
async def login_page(return_url: Optional[str] = Query(None, alias="return")):
    return render_login("user", return_url)


@router.get("/admin-login", response_class=HTMLResponse)
async def admin_login_page(return_url: Optional[str] = Query(None, alias="return")):
    return render_login("admin", return_url)


def _welcome(account: dict, permissions: Iterable[str]) -> str:
    role = ROLE_NAMES.get(account.get("role"), account.get("role") or "")
    granted = ", ".join(permissions) or "none"
    return (
        f"<p>Welcome, {html.escape(display_name(account))} ({html.escape(role)}).</p>\n"
        f"<p>Permissions: {html.escape(granted)}</p>"
    )


@router.get("/dashboard")
async def dashboard(
    request: Request,
    auth: AuthFacade = Depends(get_user_auth),
    navigator: RecordingNavigator = Depends(get_navigator),
    notifier: StoredNotifier = Depends(get_notifier),
):
    """Seeker and provider dashboard."""
    if not await auth.require_auth(str(request.url.path)):
        return await guard_response(navigator, notifier)
    session = await auth.current_session()
    return render_page("Dashboard", _welcome(session.account, auth.permissions.permissions_for(session)))


@router.get("/admin/dashboard")
async def admin_dashboard(
    request: Request,
    auth: AuthFacade = Depends(get_admin_auth),
    navigator: RecordingNavigator = Depends(get_navigator),
    notifier: StoredNotifier = Depends(get_notifier),
):
    """Administration dashboard; any administrative permission opens it."""
    if not await auth.require_auth(str(request.url.path)):
        return await guard_response(navigator, notifier)
    if not await auth.require_permission(list(ADMIN_AREA_PERMISSIONS)):
        return await guard_response(navigator, notifier)
    session = await auth.current_session()
    return render_page("Admin dashboard", _welcome(session.account, auth.permissions.permissions_for(session)))


@router.get("/admin/analytics")
async def admin_analytics(
    request: Request,
    auth: AuthFacade = Depends(get_admin_auth),
    navigator: RecordingNavigator = Depends(get_navigator),
    notifier: StoredNotifier = Depends(get_notifier),
):
    if not await auth.require_auth(str(request.url.path)):
        return await guard_response(navigator, notifier)
    if not await auth.require_permission("analytics", redirect_url="/admin/dashboard"):
        return await guard_response(navigator, notifier)
    session = await auth.current_session()
    return render_page("Analytics", _welcome(session.account, auth.permissions.permissions_for(session)))
