from __future__ import annotations

import asyncio
import io
import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from h5p_server.domain.library import InstalledLibrary, LibraryName
from h5p_server.models.installed_library import InstalledLibraryRow
from h5p_server.services.library.errors import (
    LibraryAlreadyInstalledError,
    LibraryFileNotFoundError,
    LibraryNotInstalledError,
)
from h5p_server.services.library.file_storage import FileLibraryStorage
from h5p_server.services.library.types import LIBRARY_METADATA_FILE, LibraryMetadata

logger = logging.getLogger(__name__)


def _row_to_record(row: InstalledLibraryRow) -> InstalledLibrary:
    return InstalledLibrary(
        machine_name=row.machine_name,
        major_version=row.major_version,
        minor_version=row.minor_version,
        patch_version=row.patch_version,
        id=row.id,
        title=row.title,
        runnable=row.runnable,
        restricted=row.restricted,
    )


def _apply_metadata(row: InstalledLibraryRow, metadata: LibraryMetadata) -> None:
    row.patch_version = metadata.patch_version
    row.title = metadata.title
    row.runnable = metadata.runnable
    row.meta = metadata.to_json_dict()


class SqlLibraryStorage(FileLibraryStorage):
    """Library records and metadata in the database, library files on disk.

    ``library.json`` is never written to disk; it is served from the stored
    metadata.
    """

    name = "sql"

    def __init__(self, session_factory: Callable[[], Session], files_root: str | Path):
        super().__init__(files_root)
        self._session_factory = session_factory

    def _find_row(self, db: Session, library: LibraryName) -> InstalledLibraryRow | None:
        return db.execute(
            select(InstalledLibraryRow)
            .where(InstalledLibraryRow.machine_name == library.machine_name)
            .where(InstalledLibraryRow.major_version == library.major_version)
            .where(InstalledLibraryRow.minor_version == library.minor_version)
        ).scalar_one_or_none()

    def _installed(self, machine_names: tuple[str, ...]) -> list[InstalledLibrary]:
        stmt = select(InstalledLibraryRow).order_by(
            InstalledLibraryRow.machine_name,
            InstalledLibraryRow.major_version,
            InstalledLibraryRow.minor_version,
        )
        if machine_names:
            stmt = stmt.where(InstalledLibraryRow.machine_name.in_(machine_names))
        with self._session_factory() as db:
            rows = db.execute(stmt).scalars().all()
            return [_row_to_record(r) for r in rows]

    async def get_installed(self, *machine_names: str) -> list[InstalledLibrary]:
        return await asyncio.to_thread(self._installed, machine_names)

    def _row_id(self, library: LibraryName) -> int | None:
        with self._session_factory() as db:
            row = self._find_row(db, library)
            return row.id if row else None

    async def get_id(self, library: LibraryName) -> int | None:
        return await asyncio.to_thread(self._row_id, library)

    def _install(self, metadata: LibraryMetadata, restricted: bool) -> InstalledLibrary:
        library = metadata.name
        with self._session_factory() as db:
            if self._find_row(db, library) is not None:
                raise LibraryAlreadyInstalledError(library)

            row = InstalledLibraryRow(
                machine_name=library.machine_name,
                major_version=library.major_version,
                minor_version=library.minor_version,
                restricted=restricted,
            )
            _apply_metadata(row, metadata)
            db.add(row)
            db.commit()
            db.refresh(row)
            record = _row_to_record(row)

        directory = self.library_dir(library)
        if directory.exists():
            # Leftovers of a library that was removed from the database only.
            shutil.rmtree(directory)
        directory.mkdir(parents=True)

        logger.info("Stored library %s with id %s", library.ubername, record.id)
        return record

    def _update(self, library: LibraryName, metadata: LibraryMetadata) -> None:
        with self._session_factory() as db:
            row = self._find_row(db, library)
            if row is None:
                raise LibraryNotInstalledError(library)
            _apply_metadata(row, metadata)
            db.commit()

    def _clear(self, library: LibraryName) -> None:
        directory = self.library_dir(library)
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True)

    def _remove(self, library: LibraryName) -> None:
        directory = self.library_dir(library)
        with self._session_factory() as db:
            row = self._find_row(db, library)
            if row is None and not directory.exists():
                raise LibraryNotInstalledError(library)
            if row is not None:
                db.delete(row)
                db.commit()

        if directory.exists():
            shutil.rmtree(directory)
        logger.info("Removed library %s", library.dir_name)

    async def file_exists(self, library: LibraryName, filename: str) -> bool:
        if filename == LIBRARY_METADATA_FILE:
            return await self.get_id(library) is not None
        return await super().file_exists(library, filename)

    def _open(self, library: LibraryName, filename: str) -> BinaryIO:
        if filename != LIBRARY_METADATA_FILE:
            return super()._open(library, filename)
        with self._session_factory() as db:
            row = self._find_row(db, library)
            if row is None:
                raise LibraryFileNotFoundError(library, filename)
            return io.BytesIO(LibraryMetadata.model_validate(row.meta).to_json_bytes())
