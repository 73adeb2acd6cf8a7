"""
asgi.py -- Application assembly for Foundex auth.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/routes.py; web/routes.py knows nothing about api/.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from core.config import get_settings
from web.guard import EdgeGuardMiddleware, RouteGuard
from web.routes import router as web_router

# Mount the web page router here, not in api/main.py.
app.include_router(web_router, tags=["Web"])

# The edge route guard only matters for page routes, so it is attached here.
# Registered last, it becomes the outermost middleware: cookie-less requests
# for protected prefixes are redirected before anything else runs.
_settings = get_settings()
app.add_middleware(
    EdgeGuardMiddleware,
    guard=RouteGuard(_settings.protected_prefixes, entry_point=_settings.entry_point),
)
