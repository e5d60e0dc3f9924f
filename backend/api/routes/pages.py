"""
Public and member pages.

Signup, login, the members area and logout. Form posts redirect on
success; failures are rendered by the app's exception handlers.
"""

import random
from typing import Optional

from fastapi import APIRouter, Depends, Form, status
from fastapi.responses import HTMLResponse, RedirectResponse

from modules.auth.exceptions import InvalidCredentialsError, UserNotFoundError
from modules.auth.models import SessionRecord
from modules.auth.service import AuthService
from shared.config import Settings

from ..dependencies import get_app_settings, get_auth_service
from ..middleware.auth import (
    clear_session_cookie_kwargs,
    get_current_session,
    require_session,
    session_cookie_kwargs,
    sign_token,
)
from ..views import render

router = APIRouter()


def _redirect_with_session(settings: Settings, session: SessionRecord, url: str) -> RedirectResponse:
    response = RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(**session_cookie_kwargs(settings, sign_token(settings, session.token)))
    return response


@router.get("/", response_class=HTMLResponse)
async def home(
    session: Optional[SessionRecord] = Depends(get_current_session),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse:
    """Landing page; shows a greeting when logged in."""
    user = session.user if session and session.authenticated else None
    return render("index.html", settings, user=user)


@router.get("/signup", response_class=HTMLResponse)
async def signup_form(settings: Settings = Depends(get_app_settings)) -> HTMLResponse:
    return render("signup.html", settings, title="Sign up")


async def _replace_session(
    service: AuthService,
    previous: Optional[SessionRecord],
    session: SessionRecord,
    settings: Settings,
) -> RedirectResponse:
    # The browser drops the old cookie, so its record would never be read again.
    if previous is not None:
        await service.logout(previous)
    return _redirect_with_session(settings, session, "/members")


@router.post("/signup-submit")
async def signup_submit(
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    previous: Optional[SessionRecord] = Depends(get_current_session),
    settings: Settings = Depends(get_app_settings),
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """Create the account and log the new user in."""
    session = await service.validate_signup(name, email, password)
    return await _replace_session(service, previous, session, settings)


@router.get("/login", response_class=HTMLResponse)
async def login_form(settings: Settings = Depends(get_app_settings)) -> HTMLResponse:
    return render("login.html", settings, title="Log in")


@router.post("/login-submit")
async def login_submit(
    email: str = Form(""),
    password: str = Form(""),
    previous: Optional[SessionRecord] = Depends(get_current_session),
    settings: Settings = Depends(get_app_settings),
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """Check credentials and start a session."""
    try:
        session = await service.validate_login(email, password)
    except (UserNotFoundError, InvalidCredentialsError):
        raise InvalidCredentialsError()
    return await _replace_session(service, previous, session, settings)


@router.get("/members", response_class=HTMLResponse)
async def members(
    session: SessionRecord = Depends(require_session),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse:
    """Members area with a randomly chosen image."""
    image = random.choice(settings.member_images) if settings.member_images else None
    return render("members.html", settings, title="Members", user=session.user, image=image)


@router.post("/logout")
async def logout(
    session: Optional[SessionRecord] = Depends(get_current_session),
    settings: Settings = Depends(get_app_settings),
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """End the session and clear the cookie."""
    if session is not None:
        await service.logout(session)
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(**clear_session_cookie_kwargs(settings))
    return response
