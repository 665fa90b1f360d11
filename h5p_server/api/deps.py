from __future__ import annotations

from fastapi import Depends, HTTPException, status

from h5p_server.core.editor_config import EditorConfig, load_editor_config
from h5p_server.core.settings_store import SettingsStore, SqlSettingsStore
from h5p_server.db.session import SessionLocal
from h5p_server.domain.library import LibraryName
from h5p_server.services.library.factory import get_library_manager

__all__ = [
    "get_editor_config",
    "get_library_manager",
    "get_settings_store",
    "parse_library_name",
]


def get_settings_store() -> SettingsStore:
    return SqlSettingsStore(SessionLocal)


async def get_editor_config(
    store: SettingsStore = Depends(get_settings_store),
) -> EditorConfig:
    return await load_editor_config(store)


def parse_library_name(ubername: str) -> LibraryName:
    """Path parameter like ``H5P.Example-1.2``."""
    try:
        return LibraryName.from_ubername(ubername)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
