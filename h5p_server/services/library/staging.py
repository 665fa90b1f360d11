from __future__ import annotations

import json
from pathlib import Path
from typing import Any, BinaryIO

from pydantic import ValidationError

from h5p_server.services.library.errors import LibraryMetadataError
from h5p_server.services.library.types import LIBRARY_METADATA_FILE, LibraryMetadata


def read_json_stream(stream: BinaryIO) -> Any:
    """Decode a JSON document from a byte stream and close the stream."""
    with stream:
        raw = stream.read()
    return json.loads(raw.decode("utf-8-sig"))


def read_staging_metadata(directory: str | Path) -> LibraryMetadata:
    p = Path(directory) / LIBRARY_METADATA_FILE
    try:
        raw = json.loads(p.read_text(encoding="utf-8-sig"))
        return LibraryMetadata.model_validate(raw)
    except FileNotFoundError as exc:
        raise LibraryMetadataError(f"{p} does not exist.") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise LibraryMetadataError(f"{p} is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise LibraryMetadataError(f"{p} does not describe a library: {exc}") from exc


def list_library_files(directory: str | Path) -> list[tuple[str, Path]]:
    """All regular files below ``directory`` except its library.json.

    Symlinks are skipped.

    Returns (posix path relative to ``directory``, absolute path) pairs.
    """
    root = Path(directory)
    resolved_root = root.resolve()
    out: list[tuple[str, Path]] = []
    for p in sorted(root.rglob("*")):
        if p.is_symlink() or not p.is_file():
            continue
        # A symlinked parent directory could still lead outside the library.
        if not p.resolve().is_relative_to(resolved_root):
            continue
        rel = p.relative_to(root).as_posix()
        if rel == LIBRARY_METADATA_FILE:
            continue
        out.append((rel, p))
    return out
