from __future__ import annotations

import mimetypes
from typing import BinaryIO, Iterator

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse

from h5p_server.api.deps import get_library_manager, parse_library_name
from h5p_server.domain.library import LibraryName
from h5p_server.schemas.library import InstalledLibraryOut, InstallJobIn, InstallJobOut
from h5p_server.services.library.errors import (
    InvalidLibraryFilenameError,
    LibraryFileNotFoundError,
    LibraryMetadataError,
    LibraryNotInstalledError,
)
from h5p_server.services.library.manager import LibraryManager
from h5p_server.services.library.staging import read_staging_metadata
from h5p_server.workers.queue import enqueue_library_install

router = APIRouter(prefix="/v1", tags=["libraries"])

CHUNK_SIZE = 64 * 1024


def _iter_stream(stream: BinaryIO) -> Iterator[bytes]:
    try:
        while chunk := stream.read(CHUNK_SIZE):
            yield chunk
    finally:
        stream.close()


@router.get("/libraries", response_model=dict[str, list[InstalledLibraryOut]])
async def list_libraries(
    machine_name: list[str] = Query(default=[]),
    manager: LibraryManager = Depends(get_library_manager),
):
    installed = await manager.get_installed(*machine_name)
    return {
        name: [InstalledLibraryOut.model_validate(lib) for lib in libs]
        for name, libs in installed.items()
    }


@router.post("/libraries/install-jobs", response_model=InstallJobOut)
def start_install_job(payload: InstallJobIn):
    try:
        read_staging_metadata(payload.directory)
    except LibraryMetadataError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    job = enqueue_library_install(
        directory=payload.directory, restricted=payload.restricted
    )
    return InstallJobOut(job_id=str(job.id), status="queued")


@router.get("/libraries/{ubername}")
async def get_library(
    library: LibraryName = Depends(parse_library_name),
    manager: LibraryManager = Depends(get_library_manager),
):
    metadata = await manager.load_library(library)
    if metadata is None:
        raise HTTPException(status_code=404, detail="Library not found")
    return {**metadata.to_json_dict(), "libraryId": metadata.library_id}


@router.delete("/libraries/{ubername}", status_code=204)
async def delete_library(
    library: LibraryName = Depends(parse_library_name),
    manager: LibraryManager = Depends(get_library_manager),
):
    try:
        await manager.uninstall_library(library)
    except LibraryNotInstalledError:
        raise HTTPException(status_code=404, detail="Library not found")
    return Response(status_code=204)


@router.get("/libraries/{ubername}/semantics")
async def get_semantics(
    library: LibraryName = Depends(parse_library_name),
    manager: LibraryManager = Depends(get_library_manager),
):
    try:
        return await manager.load_semantics(library)
    except LibraryFileNotFoundError:
        raise HTTPException(status_code=404, detail="semantics.json not found")


@router.get("/libraries/{ubername}/languages", response_model=list[str])
async def list_languages(
    library: LibraryName = Depends(parse_library_name),
    manager: LibraryManager = Depends(get_library_manager),
):
    return await manager.list_languages(library)


@router.get("/libraries/{ubername}/languages/{language}")
async def get_language(
    language: str,
    library: LibraryName = Depends(parse_library_name),
    manager: LibraryManager = Depends(get_library_manager),
):
    data = await manager.load_language(library, language)
    if data is None:
        raise HTTPException(status_code=404, detail="Language not found")
    return data


@router.get("/libraries/{ubername}/files/{filename:path}")
async def get_library_file(
    filename: str,
    library: LibraryName = Depends(parse_library_name),
    manager: LibraryManager = Depends(get_library_manager),
):
    try:
        stream = await manager.get_file_stream(library, filename)
    except (LibraryFileNotFoundError, InvalidLibraryFilenameError):
        raise HTTPException(status_code=404, detail="File not found")

    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return StreamingResponse(_iter_stream(stream), media_type=media_type)
