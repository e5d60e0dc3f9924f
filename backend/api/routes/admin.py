"""
Admin pages.

Only mounted when role support is enabled. Every route re-checks the
caller's stored role through require_admin.
"""

from fastapi import APIRouter, Depends, Form, status
from fastapi.responses import HTMLResponse, RedirectResponse

from modules.auth.exceptions import UserNotFoundError
from modules.auth.models import SessionRecord
from modules.auth.service import AuthService
from shared.config import Settings
from shared.exceptions import NotFoundError

from ..dependencies import get_app_settings, get_auth_service
from ..middleware.auth import require_admin
from ..views import render

router = APIRouter()


@router.get("", response_class=HTMLResponse)
async def admin_page(
    session: SessionRecord = Depends(require_admin),
    settings: Settings = Depends(get_app_settings),
    service: AuthService = Depends(get_auth_service),
) -> HTMLResponse:
    """List every user with a promote/demote control."""
    users = await service.list_users(session)
    return render("admin.html", settings, title="Admin", user=session.user, users=users)


@router.post("/update-role")
async def update_role(
    name: str = Form(""),
    role: str = Form(""),
    session: SessionRecord = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """Set a user's role by display name."""
    try:
        await service.update_user_role(session, name, role)
    except UserNotFoundError:
        raise NotFoundError(f"No user named {name}", code="USER_NOT_FOUND")
    return RedirectResponse("/admin", status_code=status.HTTP_303_SEE_OTHER)
