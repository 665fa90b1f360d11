from __future__ import annotations

from fastapi import APIRouter

from h5p_server.api.routes import health, libraries, settings

api_router = APIRouter()

# Keep this list in the order you want routes registered.
for _mod in (health, settings, libraries):
    api_router.include_router(_mod.router)
