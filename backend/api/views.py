"""
HTML rendering.

Pages are Jinja2 templates under api/templates; every page receives the
application name and the roles flag.
"""

from pathlib import Path
from typing import Any

from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from shared.config import Settings

TEMPLATES_DIR = Path(__file__).parent / "templates"
STATIC_DIR = Path(__file__).parent / "static"

jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


def render(
    template_name: str,
    settings: Settings,
    status_code: int = 200,
    **context: Any,
) -> HTMLResponse:
    """Render a template into an HTMLResponse."""
    template = jinja_env.get_template(template_name)
    content = template.render(
        app_name=settings.app_name,
        roles_enabled=settings.enable_roles,
        **context,
    )
    return HTMLResponse(content=content, status_code=status_code)


def render_error(
    settings: Settings,
    message: str,
    back_url: str = "/",
    status_code: int = 400,
) -> HTMLResponse:
    """Render an error message with a link back to the originating form."""
    return render(
        "error.html",
        settings,
        status_code=status_code,
        title="Error",
        message=message,
        back_url=back_url,
    )
