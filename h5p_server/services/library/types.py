from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from h5p_server.domain.library import LibraryName

LIBRARY_METADATA_FILE = "library.json"
SEMANTICS_FILE = "semantics.json"
LANGUAGE_DIR = "language"


class LibraryFileRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: str


class LibraryMetadata(BaseModel):
    """Decoded contents of a library's ``library.json``.

    Keys the server does not interpret are kept as extra fields so the file can
    be written back unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    machine_name: str = Field(alias="machineName")
    major_version: int = Field(alias="majorVersion")
    minor_version: int = Field(alias="minorVersion")
    patch_version: int = Field(default=0, alias="patchVersion")
    title: str = ""
    runnable: bool = False
    preloaded_js: list[LibraryFileRef] | None = Field(default=None, alias="preloadedJs")
    preloaded_css: list[LibraryFileRef] | None = Field(
        default=None, alias="preloadedCss"
    )

    # Attached by LibraryManager.load_library, never part of library.json.
    library_id: int | None = Field(default=None, alias="libraryId", exclude=True)

    @field_validator("runnable", mode="before")
    @classmethod
    def normalize_runnable(cls, v: Any) -> bool:
        # library.json uses 0/1
        if v is None:
            return False
        if isinstance(v, str):
            return v.strip().lower() in {"1", "true", "yes"}
        return bool(v)

    @property
    def name(self) -> LibraryName:
        return LibraryName(
            machine_name=self.machine_name,
            major_version=self.major_version,
            minor_version=self.minor_version,
            patch_version=self.patch_version,
        )

    def preloaded_paths(self) -> list[str]:
        refs = list(self.preloaded_js or []) + list(self.preloaded_css or [])
        return [ref.path for ref in refs]

    def to_json_dict(self) -> dict[str, Any]:
        unset = {
            name for name in ("preloaded_js", "preloaded_css") if getattr(self, name) is None
        }
        return self.model_dump(mode="json", by_alias=True, exclude=unset)

    def to_json_bytes(self) -> bytes:
        return json.dumps(self.to_json_dict(), indent=2).encode("utf-8")


class LookupStatus(str, Enum):
    found = "found"
    not_found = "not_found"
    parse_error = "parse_error"


@dataclass(frozen=True)
class LibraryLookup:
    """Outcome of reading a library's metadata from storage."""

    status: LookupStatus
    metadata: LibraryMetadata | None = None
    error: Exception | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.found
