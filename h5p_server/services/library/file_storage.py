from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO

from h5p_server.domain.library import InstalledLibrary, LibraryName
from h5p_server.services.library.errors import (
    InvalidLibraryFilenameError,
    LibraryAlreadyInstalledError,
    LibraryFileNotFoundError,
    LibraryNotInstalledError,
)
from h5p_server.services.library.types import (
    LANGUAGE_DIR,
    LIBRARY_METADATA_FILE,
    LibraryMetadata,
)

logger = logging.getLogger(__name__)

INDEX_FILE = "libraries.json"


def to_record(
    metadata: LibraryMetadata, *, library_id: int, restricted: bool = False
) -> InstalledLibrary:
    return InstalledLibrary(
        machine_name=metadata.machine_name,
        major_version=metadata.major_version,
        minor_version=metadata.minor_version,
        patch_version=metadata.patch_version,
        id=library_id,
        title=metadata.title,
        runnable=metadata.runnable,
        restricted=restricted,
    )


class FileLibraryStorage:
    """Keeps every library in its own directory below ``root``.

    Layout::

        <root>/libraries.json            id index
        <root>/H5P.Example-1.2/library.json
        <root>/H5P.Example-1.2/...       library files

    Disk work runs in worker threads so callers on the event loop are not
    blocked.
    """

    name = "file"

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    # Paths

    def library_dir(self, library: LibraryName) -> Path:
        return self.root / library.dir_name

    def file_path(self, library: LibraryName, filename: str) -> Path:
        rel = PurePosixPath(filename.replace("\\", "/"))
        if not rel.parts or rel.is_absolute() or ".." in rel.parts:
            raise InvalidLibraryFilenameError(filename)
        return self.library_dir(library).joinpath(*rel.parts)

    # Id index

    def _index_path(self) -> Path:
        return self.root / INDEX_FILE

    def _read_index(self) -> dict[str, Any]:
        p = self._index_path()
        if not p.exists():
            return {"next_id": 1, "libraries": {}}
        return json.loads(p.read_text(encoding="utf-8"))

    def _write_index(self, index: dict[str, Any]) -> None:
        p = self._index_path()
        tmp = p.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(index, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, p)

    def _entry(self, library: LibraryName) -> dict[str, Any] | None:
        return self._read_index()["libraries"].get(library.dir_name)

    # Records

    def _write_metadata(self, library: LibraryName, metadata: LibraryMetadata) -> None:
        (self.library_dir(library) / LIBRARY_METADATA_FILE).write_bytes(
            metadata.to_json_bytes()
        )

    async def get_installed(self, *machine_names: str) -> list[InstalledLibrary]:
        """Records from the id index; the manager fills in the rest from library.json."""
        wanted = set(machine_names)
        entries: dict[str, Any] = (await asyncio.to_thread(self._read_index))["libraries"]

        out: list[InstalledLibrary] = []
        for dir_name, entry in sorted(entries.items()):
            try:
                library = LibraryName.from_ubername(dir_name)
            except ValueError:
                logger.warning("Skipping unknown entry %s in %s", dir_name, INDEX_FILE)
                continue
            if wanted and library.machine_name not in wanted:
                continue
            out.append(
                InstalledLibrary(
                    machine_name=library.machine_name,
                    major_version=library.major_version,
                    minor_version=library.minor_version,
                    id=entry["id"],
                    restricted=entry.get("restricted", False),
                )
            )
        return out

    async def get_id(self, library: LibraryName) -> int | None:
        entry = await asyncio.to_thread(self._entry, library)
        return entry["id"] if entry else None

    def _install(self, metadata: LibraryMetadata, restricted: bool) -> InstalledLibrary:
        library = metadata.name
        index = self._read_index()
        directory = self.library_dir(library)
        if library.dir_name in index["libraries"] or directory.exists():
            raise LibraryAlreadyInstalledError(library)

        directory.mkdir(parents=True)
        self._write_metadata(library, metadata)

        library_id = int(index["next_id"])
        index["next_id"] = library_id + 1
        index["libraries"][library.dir_name] = {
            "id": library_id,
            "restricted": restricted,
        }
        self._write_index(index)

        logger.info("Stored library %s with id %s", library.ubername, library_id)
        return to_record(metadata, library_id=library_id, restricted=restricted)

    async def install_library(
        self, metadata: LibraryMetadata, *, restricted: bool = False
    ) -> InstalledLibrary:
        return await asyncio.to_thread(self._install, metadata, restricted)

    def _update(self, library: LibraryName, metadata: LibraryMetadata) -> None:
        if self._entry(library) is None:
            raise LibraryNotInstalledError(library)
        self.library_dir(library).mkdir(parents=True, exist_ok=True)
        self._write_metadata(library, metadata)

    async def update_library(
        self, library: LibraryName, metadata: LibraryMetadata
    ) -> None:
        await asyncio.to_thread(self._update, library, metadata)

    def _clear(self, library: LibraryName) -> None:
        directory = self.library_dir(library)
        if not directory.is_dir():
            raise LibraryNotInstalledError(library)
        for child in directory.iterdir():
            if child.name == LIBRARY_METADATA_FILE:
                continue
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()

    async def clear_library_files(self, library: LibraryName) -> None:
        await asyncio.to_thread(self._clear, library)

    def _remove(self, library: LibraryName) -> None:
        index = self._read_index()
        directory = self.library_dir(library)
        known = index["libraries"].pop(library.dir_name, None) is not None
        if not known and not directory.exists():
            raise LibraryNotInstalledError(library)

        if directory.exists():
            shutil.rmtree(directory)
        if known:
            self._write_index(index)
        logger.info("Removed library %s", library.dir_name)

    async def remove_library(self, library: LibraryName) -> None:
        await asyncio.to_thread(self._remove, library)

    # Files

    def _write_file(self, library: LibraryName, filename: str, stream: BinaryIO) -> None:
        target = self.file_path(library, filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as out:
            shutil.copyfileobj(stream, out)

    async def add_library_file(
        self, library: LibraryName, filename: str, stream: BinaryIO
    ) -> None:
        await asyncio.to_thread(self._write_file, library, filename, stream)

    async def file_exists(self, library: LibraryName, filename: str) -> bool:
        try:
            p = self.file_path(library, filename)
        except InvalidLibraryFilenameError:
            return False
        return await asyncio.to_thread(p.is_file)

    def _open(self, library: LibraryName, filename: str) -> BinaryIO:
        p = self.file_path(library, filename)
        if not p.is_file():
            raise LibraryFileNotFoundError(library, filename)
        return p.open("rb")

    async def get_file_stream(self, library: LibraryName, filename: str) -> BinaryIO:
        return await asyncio.to_thread(self._open, library, filename)

    def _language_files(self, library: LibraryName) -> list[str]:
        lang_dir = self.library_dir(library) / LANGUAGE_DIR
        if not lang_dir.is_dir():
            return []
        return sorted(p.stem for p in lang_dir.glob("*.json") if p.is_file())

    async def get_language_files(self, library: LibraryName) -> list[str]:
        return await asyncio.to_thread(self._language_files, library)
