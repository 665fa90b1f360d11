from __future__ import annotations

from collections.abc import Sequence

from h5p_server.domain.library import LibraryName


class LibraryError(Exception):
    """Base class for library installation and lookup errors."""


class LibraryNotInstalledError(LibraryError):
    def __init__(self, library: LibraryName):
        self.library = library
        super().__init__(f"Error in library {library.dir_name}: not installed.")


class LibraryFileNotFoundError(LibraryError, FileNotFoundError):
    def __init__(self, library: LibraryName, filename: str):
        super().__init__(f"File {filename} does not exist in library {library.dir_name}.")
        self.library = library
        self.filename = filename

    def __str__(self) -> str:
        return self.args[0]


class InvalidLibraryFilenameError(LibraryError, ValueError):
    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Invalid library file name: {filename!r}")


class LibraryMetadataError(LibraryError):
    """library.json is missing, unreadable or does not describe a library."""


class LibraryAlreadyInstalledError(LibraryError):
    def __init__(self, library: LibraryName):
        self.library = library
        super().__init__(f"Library {library.dir_name} is already installed.")


class LibraryValidationError(LibraryError):
    def __init__(self, library: LibraryName, missing_files: Sequence[str]):
        self.library = library
        self.missing_files = list(missing_files)
        lines = [f"{path} is missing." for path in self.missing_files]
        super().__init__(
            f"Error(s) in library {library.dir_name}:\n" + "\n".join(lines)
        )


class LibraryRollbackError(LibraryError):
    """Removing a partially installed library failed after an install error."""

    def __init__(
        self, library: LibraryName, original: BaseException, rollback_error: BaseException
    ):
        self.library = library
        self.original = original
        self.rollback_error = rollback_error
        super().__init__(
            f"Installing {library.dir_name} failed ({original}) and the partial "
            f"installation could not be removed: {rollback_error}"
        )
