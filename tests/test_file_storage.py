import io
import json
import shutil
import threading

import pytest
from h5p_server.domain.library import LibraryName
from h5p_server.services.library.errors import (
    InvalidLibraryFilenameError,
    LibraryAlreadyInstalledError,
    LibraryFileNotFoundError,
    LibraryNotInstalledError,
)
from h5p_server.services.library.file_storage import FileLibraryStorage
from h5p_server.services.library.types import LibraryMetadata


def _metadata(machine_name="H5P.Test", major=1, minor=0, patch=0, **extra):
    return LibraryMetadata.model_validate(
        {
            "machineName": machine_name,
            "majorVersion": major,
            "minorVersion": minor,
            "patchVersion": patch,
            "title": machine_name,
            "runnable": 0,
            **extra,
        }
    )


@pytest.mark.asyncio
async def test_install_assigns_increasing_ids(file_storage):
    a = await file_storage.install_library(_metadata("H5P.A"))
    b = await file_storage.install_library(_metadata("H5P.B"), restricted=True)

    assert (a.id, b.id) == (1, 2)
    assert b.restricted is True
    assert await file_storage.get_id(LibraryName("H5P.B", 1, 0, 7)) == 2

    # Ids are never reused after removal.
    await file_storage.remove_library(a)
    c = await file_storage.install_library(_metadata("H5P.C"))
    assert c.id == 3


@pytest.mark.asyncio
async def test_second_install_of_same_line_is_rejected(file_storage):
    await file_storage.install_library(_metadata(patch=1))
    with pytest.raises(LibraryAlreadyInstalledError):
        await file_storage.install_library(_metadata(patch=2))


@pytest.mark.asyncio
async def test_index_survives_new_instance(tmp_path):
    root = tmp_path / "libs"
    await FileLibraryStorage(root).install_library(_metadata())

    reopened = FileLibraryStorage(root)
    installed = await reopened.get_installed()
    assert [(lib.machine_name, lib.id) for lib in installed] == [("H5P.Test", 1)]
    assert json.loads((root / "libraries.json").read_text())["next_id"] == 2


@pytest.mark.asyncio
async def test_get_installed_filters_by_machine_name(file_storage):
    await file_storage.install_library(_metadata("H5P.A"))
    await file_storage.install_library(_metadata("H5P.B"))

    installed = await file_storage.get_installed("H5P.B")
    assert [lib.machine_name for lib in installed] == ["H5P.B"]


@pytest.mark.asyncio
async def test_clear_library_files_keeps_metadata(file_storage):
    lib = await file_storage.install_library(_metadata())
    await file_storage.add_library_file(lib, "js/a.js", io.BytesIO(b"a"))
    await file_storage.add_library_file(lib, "b.css", io.BytesIO(b"b"))

    await file_storage.clear_library_files(lib)

    assert not await file_storage.file_exists(lib, "js/a.js")
    assert not await file_storage.file_exists(lib, "b.css")
    assert await file_storage.file_exists(lib, "library.json")


@pytest.mark.asyncio
async def test_update_library_rewrites_metadata(file_storage):
    lib = await file_storage.install_library(_metadata(patch=1))
    await file_storage.update_library(lib, _metadata(patch=4))

    with await file_storage.get_file_stream(lib, "library.json") as stream:
        assert json.load(stream)["patchVersion"] == 4
    assert await file_storage.get_id(lib) == lib.id

    with pytest.raises(LibraryNotInstalledError):
        await file_storage.update_library(LibraryName("H5P.Nope", 1, 0), _metadata())


@pytest.mark.asyncio
async def test_file_names_cannot_escape_library_dir(file_storage):
    lib = await file_storage.install_library(_metadata())

    for bad in ("../evil.js", "/etc/passwd", "a/../../b", ""):
        with pytest.raises(InvalidLibraryFilenameError):
            await file_storage.add_library_file(lib, bad, io.BytesIO(b"x"))
        assert await file_storage.file_exists(lib, bad) is False


@pytest.mark.asyncio
async def test_missing_file_stream_raises_not_found(file_storage):
    lib = await file_storage.install_library(_metadata())
    with pytest.raises(LibraryFileNotFoundError):
        await file_storage.get_file_stream(lib, "nope.js")
    # Still a FileNotFoundError for callers that only know the builtin.
    with pytest.raises(FileNotFoundError):
        await file_storage.get_file_stream(lib, "nope.js")


@pytest.mark.asyncio
async def test_remove_unknown_library(file_storage):
    with pytest.raises(LibraryNotInstalledError):
        await file_storage.remove_library(LibraryName("H5P.Nope", 1, 0))


@pytest.mark.asyncio
async def test_file_writes_run_off_the_event_loop(file_storage, monkeypatch):
    lib = await file_storage.install_library(_metadata())
    threads = []
    real_copy = shutil.copyfileobj

    def recording_copy(src, dst, *args):
        threads.append(threading.get_ident())
        return real_copy(src, dst, *args)

    monkeypatch.setattr(shutil, "copyfileobj", recording_copy)
    await file_storage.add_library_file(lib, "a.js", io.BytesIO(b"a"))

    assert threads and threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_null_extra_keys_are_written_back(file_storage):
    lib = await file_storage.install_library(_metadata(author=None))

    with await file_storage.get_file_stream(lib, "library.json") as stream:
        data = json.load(stream)
    assert "author" in data and data["author"] is None
    assert "preloadedJs" not in data
    assert "libraryId" not in data
