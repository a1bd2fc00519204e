"""
asgi.py -- Application assembly for AuthGate.

Joins the JSON API with the static front-end bundle (the verification and
reset pages that call back into /api). api/main.py knows nothing about the
front end.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from pathlib import Path

from fastapi.staticfiles import StaticFiles

from api.main import app
from core.config import get_settings

_static_dir = Path(get_settings().static_dir)

# Mounted last so /api routes always win. Skipped when there is no bundle.
if _static_dir.is_dir():
    app.mount("/", StaticFiles(directory=_static_dir, html=True), name="static")
