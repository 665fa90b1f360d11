from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from functools import cmp_to_key
from pathlib import Path
from typing import Any, BinaryIO

from pydantic import ValidationError

from h5p_server.domain.library import InstalledLibrary, LibraryName
from h5p_server.services.library.errors import (
    LibraryError,
    LibraryFileNotFoundError,
    LibraryMetadataError,
    LibraryNotInstalledError,
    LibraryRollbackError,
    LibraryValidationError,
)
from h5p_server.services.library.staging import (
    list_library_files,
    read_json_stream,
    read_staging_metadata,
)
from h5p_server.services.library.storage import LibraryStorage
from h5p_server.services.library.types import (
    LANGUAGE_DIR,
    LIBRARY_METADATA_FILE,
    SEMANTICS_FILE,
    LibraryLookup,
    LibraryMetadata,
    LookupStatus,
)

logger = logging.getLogger(__name__)


class LibraryManager:
    """Installs, upgrades and enumerates libraries.

    Storage agnostic: everything persistent goes through the ``LibraryStorage``
    backend. The manager does not serialize concurrent installs of the same
    library; callers have to.
    """

    def __init__(self, storage: LibraryStorage):
        self.storage = storage

    async def get_installed(
        self, *machine_names: str
    ) -> dict[str, list[InstalledLibrary]]:
        """Installed libraries keyed by machine name, each list sorted ascending."""
        records = await self.storage.get_installed(*machine_names)
        enriched = await asyncio.gather(*(self._enrich(r) for r in records))

        out: dict[str, list[InstalledLibrary]] = {}
        for lib in sorted(enriched, key=cmp_to_key(lambda a, b: a.compare(b))):
            out.setdefault(lib.machine_name, []).append(lib)
        return out

    async def _enrich(self, record: InstalledLibrary) -> InstalledLibrary:
        info = await self.load_library(record)
        if info is None:
            logger.warning("Metadata of installed library %s is unreadable", record.dir_name)
            return record
        return replace(
            record,
            patch_version=info.patch_version,
            id=info.library_id if info.library_id is not None else record.id,
            runnable=info.runnable,
            title=info.title,
        )

    async def get_id(self, library: LibraryName) -> int | None:
        return await self.storage.get_id(library)

    async def library_has_upgrade(self, library: LibraryName) -> bool:
        """True if ``library`` is newer than the highest installed version."""
        installed = (await self.get_installed(library.machine_name)).get(
            library.machine_name
        )
        if not installed:
            return False
        highest = max(installed, key=cmp_to_key(lambda a, b: a.compare_versions(b)))
        return highest.compare_versions(library) < 0

    async def lookup_library(self, library: LibraryName) -> LibraryLookup:
        try:
            data = await self._get_json_file(library, LIBRARY_METADATA_FILE)
            metadata = LibraryMetadata.model_validate(data)
        except (LibraryFileNotFoundError, LibraryNotInstalledError) as exc:
            return LibraryLookup(status=LookupStatus.not_found, error=exc)
        except (ValueError, ValidationError, OSError) as exc:
            return LibraryLookup(status=LookupStatus.parse_error, error=exc)

        library_id = await self.get_id(library)
        return LibraryLookup(
            status=LookupStatus.found,
            metadata=metadata.model_copy(update={"library_id": library_id}),
        )

    async def load_library(self, library: LibraryName) -> LibraryMetadata | None:
        """library.json with the library id attached, or None if it can't be read."""
        result = await self.lookup_library(library)
        return result.metadata if result.found else None

    async def library_file_exists(self, library: LibraryName, filename: str) -> bool:
        return await self.storage.file_exists(library, filename)

    async def get_file_stream(self, library: LibraryName, filename: str) -> BinaryIO:
        """Raises LibraryFileNotFoundError if the file does not exist."""
        return await self.storage.get_file_stream(library, filename)

    async def load_semantics(self, library: LibraryName) -> Any:
        return await self._get_json_file(library, SEMANTICS_FILE)

    async def list_languages(self, library: LibraryName) -> list[str]:
        try:
            return await self.storage.get_language_files(library)
        except (LibraryError, OSError) as exc:
            logger.debug("No languages for %s: %s", library.dir_name, exc)
            return []

    async def load_language(self, library: LibraryName, language: str) -> Any | None:
        try:
            return await self._get_json_file(library, f"{LANGUAGE_DIR}/{language}.json")
        except (LibraryError, OSError, ValueError) as exc:
            logger.debug("No %s translation for %s: %s", language, library.dir_name, exc)
            return None

    async def is_patched_library(self, library: LibraryName) -> bool:
        """True if an older patch of the same major/minor version is installed."""
        installed = (await self.get_installed(library.machine_name)).get(
            library.machine_name, []
        )
        for lib in installed:
            if lib.same_line(library):
                return lib.patch_version < library.patch_version
        return False

    async def install_from_directory(
        self, directory: str | Path, *, restricted: bool = False
    ) -> bool:
        """Install or patch-update the library in ``directory``.

        The library is not validated beyond the consistency check. Returns False
        when the same or a newer patch version is already installed. On error the
        partially installed library is removed and the error re-raised.
        """
        metadata = read_staging_metadata(directory)
        library = metadata.name

        if await self.get_id(library) is not None:
            if await self.is_patched_library(library):
                logger.info("Updating library %s", library.ubername)
                await self._update_library(library, metadata, Path(directory))
                return True
            logger.info("Library %s is already installed; skipping", library.ubername)
            return False

        logger.info("Installing library %s", library.ubername)
        await self._install_library(metadata, Path(directory), restricted)
        return True

    async def uninstall_library(self, library: LibraryName) -> None:
        await self.storage.remove_library(library)
        logger.info("Uninstalled library %s", library.dir_name)

    async def _update_library(
        self, library: LibraryName, metadata: LibraryMetadata, directory: Path
    ) -> None:
        try:
            await self.storage.update_library(library, metadata)
            await self.storage.clear_library_files(library)
            await self._copy_library_files(directory, library)
            await self._check_consistency(library)
        except Exception as exc:
            await self._rollback(library, exc)
            raise

    async def _install_library(
        self, metadata: LibraryMetadata, directory: Path, restricted: bool
    ) -> InstalledLibrary:
        record = await self.storage.install_library(metadata, restricted=restricted)
        try:
            await self._copy_library_files(directory, record)
            await self._check_consistency(record)
        except Exception as exc:
            await self._rollback(record, exc)
            raise
        return record

    async def _rollback(self, library: LibraryName, error: Exception) -> None:
        logger.warning(
            "Installing %s failed, removing it: %s",
            library.ubername,
            error,
            extra={"library": library.dir_name},
        )
        try:
            await self.storage.remove_library(library)
        except Exception as rollback_error:
            logger.exception("Rollback of %s failed", library.dir_name)
            raise LibraryRollbackError(library, error, rollback_error) from error

    async def _copy_library_files(self, directory: Path, library: LibraryName) -> None:
        async def _copy(filename: str, path: Path) -> None:
            with path.open("rb") as stream:
                await self.storage.add_library_file(library, filename, stream)

        await asyncio.gather(
            *(_copy(filename, path) for filename, path in list_library_files(directory))
        )

    async def _get_json_file(self, library: LibraryName, filename: str) -> Any:
        stream = await self.storage.get_file_stream(library, filename)
        return read_json_stream(stream)

    async def _check_consistency(self, library: LibraryName) -> bool:
        """Raises unless the library's metadata and preloaded files are all present."""
        if await self.storage.get_id(library) is None:
            raise LibraryNotInstalledError(library)

        try:
            data = await self._get_json_file(library, LIBRARY_METADATA_FILE)
            metadata = LibraryMetadata.model_validate(data)
        except (LibraryError, OSError, ValueError, ValidationError) as exc:
            raise LibraryMetadataError(
                f"Error in library {library.dir_name}: library.json not readable: {exc}."
            ) from exc

        await self._check_files(library, metadata.preloaded_paths())
        return True

    async def _check_files(self, library: LibraryName, required: list[str]) -> bool:
        exists = await asyncio.gather(
            *(self.storage.file_exists(library, f) for f in required)
        )
        missing = [f for f, ok in zip(required, exists) if not ok]
        if missing:
            raise LibraryValidationError(library, missing)
        return True
