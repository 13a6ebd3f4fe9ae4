from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from tinybox_backend.http_headers import format_bytes


TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["filesize"] = format_bytes


def render_template(name: str, **context: object) -> str:
    # Non-request rendering (e-mail bodies).
    return templates.get_template(name).render(**context)
