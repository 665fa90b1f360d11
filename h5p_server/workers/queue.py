from __future__ import annotations

from pathlib import Path

from h5p_server.core.config import settings
from h5p_server.workers.redis_conn import get_redis_connection
from rq import Queue
from rq.job import Job

# A single queue; one worker on it serializes installs of the same library.
LIBRARY_QUEUE = "h5p-libraries"


def get_queue() -> Queue:
    conn = get_redis_connection()
    return Queue(LIBRARY_QUEUE, connection=conn)


def enqueue_library_install(*, directory: str | Path, restricted: bool = False) -> Job:
    q = get_queue()
    # No retries: a failed install has already been rolled back.
    return q.enqueue(
        "h5p_server.workers.jobs.install_library_job",
        str(directory),
        restricted,
        job_timeout=settings.worker_job_timeout_secs,
    )
