from __future__ import annotations

from functools import lru_cache

from h5p_server.core.config import settings
from h5p_server.db.session import SessionLocal
from h5p_server.services.library.file_storage import FileLibraryStorage
from h5p_server.services.library.manager import LibraryManager
from h5p_server.services.library.sql_storage import SqlLibraryStorage
from h5p_server.services.library.storage import LibraryStorage


@lru_cache
def get_library_storage() -> LibraryStorage:
    if settings.library_storage == "file":
        return FileLibraryStorage(settings.libraries_path)
    if settings.library_storage == "sql":
        return SqlLibraryStorage(SessionLocal, settings.libraries_path)
    raise ValueError(f"Unknown library storage: {settings.library_storage}")


def get_library_manager() -> LibraryManager:
    return LibraryManager(get_library_storage())
