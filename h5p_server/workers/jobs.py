from __future__ import annotations

import logging
from typing import Any

from h5p_server.services.library.factory import get_library_manager
from h5p_server.services.library.staging import read_staging_metadata
from h5p_server.workers.async_utils import run_async

logger = logging.getLogger(__name__)


def install_library_job(directory: str, restricted: bool = False) -> dict[str, Any]:
    """Install the library staged in ``directory``; runs on an RQ worker."""
    manager = get_library_manager()
    library = None
    try:
        library = read_staging_metadata(directory).name
        installed = run_async(
            manager.install_from_directory(directory, restricted=restricted)
        )
    except Exception:
        logger.exception(
            "install_library_job failed",
            extra={
                "library": library.ubername if library else None,
                "directory": directory,
            },
        )
        raise

    logger.info(
        "install_library_job finished",
        extra={"library": library.ubername, "installed": installed},
    )
    return {"library": library.ubername, "installed": installed}
