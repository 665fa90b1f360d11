import json
import os
from itertools import count

# Keep the app's module-level engine off the working directory.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from h5p_server.api.deps import get_library_manager, get_settings_store
from h5p_server.core.settings_store import InMemorySettingsStore
from h5p_server.main import app
from h5p_server.models import Base
from h5p_server.services.library.file_storage import FileLibraryStorage
from h5p_server.services.library.manager import LibraryManager
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture()
def make_library(tmp_path):
    """Write a staging directory for a library and return its path."""
    seq = count()

    def _make(
        machine_name="H5P.Test",
        major=1,
        minor=0,
        patch=1,
        *,
        files=None,
        **metadata,
    ):
        directory = tmp_path / "staging" / f"{machine_name}-{major}.{minor}.{patch}-{next(seq)}"
        directory.mkdir(parents=True)
        meta = {
            "machineName": machine_name,
            "majorVersion": major,
            "minorVersion": minor,
            "patchVersion": patch,
            "title": "Test",
            "runnable": 1,
        }
        meta.update(metadata)
        (directory / "library.json").write_text(json.dumps(meta), encoding="utf-8")
        for rel, content in (files or {}).items():
            p = directory / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                p.write_bytes(content)
            else:
                p.write_text(content, encoding="utf-8")
        return directory

    return _make


@pytest.fixture()
def file_storage(tmp_path):
    return FileLibraryStorage(tmp_path / "libraries")


@pytest.fixture()
def manager(file_storage):
    return LibraryManager(file_storage)


@pytest.fixture()
def session_factory():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield sessionmaker(autocommit=False, autoflush=False, bind=eng)
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture()
def client(manager, settings_store):
    app.dependency_overrides[get_library_manager] = lambda: manager
    app.dependency_overrides[get_settings_store] = lambda: settings_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class FailingStorage:
    """Delegates to a real storage but fails the named operations (and optionally removal)."""

    def __init__(self, inner, *, fail=("add_library_file",), fail_remove=False):
        self.inner = inner
        self.fail = fail
        self.fail_remove = fail_remove
        self.removed = []

    def __getattr__(self, name):
        if name in self.fail:

            async def _fail(*args, **kwargs):
                raise OSError("disk full")

            return _fail
        return getattr(self.inner, name)

    async def remove_library(self, library):
        self.removed.append(library.dir_name)
        if self.fail_remove:
            raise OSError("permission denied")
        await self.inner.remove_library(library)


@pytest.fixture()
def failing_storage():
    return FailingStorage
