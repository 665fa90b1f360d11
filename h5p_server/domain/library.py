from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

_UBERNAME_RE = re.compile(
    r"^(?P<machine_name>[\w.]+)[- ](?P<major>\d+)\.(?P<minor>\d+)(?:\.(?P<patch>\d+))?$"
)


@dataclass(frozen=True)
class LibraryName:
    """Machine name and version triple of an H5P library."""

    machine_name: str
    major_version: int
    minor_version: int
    patch_version: int = 0

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> LibraryName:
        return cls(
            machine_name=str(metadata["machineName"]),
            major_version=int(metadata["majorVersion"]),
            minor_version=int(metadata["minorVersion"]),
            patch_version=int(metadata.get("patchVersion") or 0),
        )

    @classmethod
    def from_ubername(cls, ubername: str) -> LibraryName:
        """Parse ``H5P.Example-1.2`` (or ``H5P.Example 1.2.3``)."""
        m = _UBERNAME_RE.match(ubername.strip())
        if not m:
            raise ValueError(f"Invalid library name: {ubername!r}")
        return cls(
            machine_name=m.group("machine_name"),
            major_version=int(m.group("major")),
            minor_version=int(m.group("minor")),
            patch_version=int(m.group("patch") or 0),
        )

    @property
    def dir_name(self) -> str:
        # Patch versions replace each other, so they share a directory.
        return f"{self.machine_name}-{self.major_version}.{self.minor_version}"

    @property
    def ubername(self) -> str:
        return (
            f"{self.machine_name}-{self.major_version}."
            f"{self.minor_version}.{self.patch_version}"
        )

    def same_line(self, other: LibraryName) -> bool:
        return (
            self.machine_name == other.machine_name
            and self.major_version == other.major_version
            and self.minor_version == other.minor_version
        )

    def _version(self) -> tuple[int, int, int]:
        return (self.major_version, self.minor_version, self.patch_version)

    def compare_versions(self, other: LibraryName) -> int:
        """-1, 0 or 1 comparing only major/minor/patch."""
        mine, theirs = self._version(), other._version()
        return (mine > theirs) - (mine < theirs)

    def compare(self, other: LibraryName) -> int:
        """-1, 0 or 1 comparing machine name first, then the version."""
        if self.machine_name != other.machine_name:
            return -1 if self.machine_name < other.machine_name else 1
        return self.compare_versions(other)

    def __lt__(self, other: LibraryName) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: LibraryName) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: LibraryName) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: LibraryName) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return self.ubername


@dataclass(frozen=True)
class InstalledLibrary(LibraryName):
    """A library record known to a storage backend."""

    id: int = 0
    title: str = ""
    runnable: bool = False
    restricted: bool = False
