from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class InstalledLibraryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    machine_name: str
    major_version: int
    minor_version: int
    patch_version: int
    title: str
    runnable: bool
    restricted: bool


class InstallJobIn(BaseModel):
    # Server-side staging directory holding the library's library.json.
    directory: str
    restricted: bool = False


class InstallJobOut(BaseModel):
    job_id: str
    status: str
