from __future__ import annotations

from typing import Any, Callable, Protocol

from h5p_server.models.editor_setting import EditorSetting
from sqlalchemy.orm import Session


class SettingsStore(Protocol):
    """Key-value persistence for user-configurable settings."""

    async def load(self, key: str) -> Any | None: ...

    async def save(self, key: str, value: Any) -> None: ...


class InMemorySettingsStore:
    def __init__(self, values: dict[str, Any] | None = None):
        self.values: dict[str, Any] = dict(values or {})

    async def load(self, key: str) -> Any | None:
        return self.values.get(key)

    async def save(self, key: str, value: Any) -> None:
        self.values[key] = value


class SqlSettingsStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def load(self, key: str) -> Any | None:
        with self._session_factory() as db:
            row = db.get(EditorSetting, key)
            return row.value if row else None

    async def save(self, key: str, value: Any) -> None:
        with self._session_factory() as db:
            row = db.get(EditorSetting, key)
            if row is None:
                db.add(EditorSetting(key=key, value=value))
            else:
                row.value = value
            db.commit()
