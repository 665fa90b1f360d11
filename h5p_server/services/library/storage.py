from __future__ import annotations

from typing import BinaryIO, Protocol

from h5p_server.domain.library import InstalledLibrary, LibraryName
from h5p_server.services.library.types import LibraryMetadata


class LibraryStorage(Protocol):
    """Persists installed libraries: their records, metadata and files.

    A backend keeps at most one record per machine name + major + minor version;
    a newer patch version replaces the older one in place.
    """

    async def get_installed(self, *machine_names: str) -> list[InstalledLibrary]: ...

    async def get_id(self, library: LibraryName) -> int | None:
        """Id of the installed record of the library's line (patch is ignored)."""
        ...

    async def install_library(
        self, metadata: LibraryMetadata, *, restricted: bool = False
    ) -> InstalledLibrary: ...

    async def update_library(
        self, library: LibraryName, metadata: LibraryMetadata
    ) -> None: ...

    async def clear_library_files(self, library: LibraryName) -> None: ...

    async def remove_library(self, library: LibraryName) -> None: ...

    async def add_library_file(
        self, library: LibraryName, filename: str, stream: BinaryIO
    ) -> None: ...

    async def file_exists(self, library: LibraryName, filename: str) -> bool: ...

    async def get_file_stream(self, library: LibraryName, filename: str) -> BinaryIO:
        """Raises LibraryFileNotFoundError if the file is absent."""
        ...

    async def get_language_files(self, library: LibraryName) -> list[str]: ...
