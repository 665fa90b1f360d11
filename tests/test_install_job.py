import logging

import pytest
from h5p_server.domain.library import LibraryName
from h5p_server.services.library.errors import LibraryMetadataError, LibraryValidationError
from h5p_server.workers import jobs
from h5p_server.workers.async_utils import run_async


def test_install_library_job_installs_then_skips(manager, make_library, monkeypatch):
    monkeypatch.setattr(jobs, "get_library_manager", lambda: manager)
    staging = make_library(files={"a.js": "a"}, preloadedJs=[{"path": "a.js"}])

    first = jobs.install_library_job(str(staging))
    second = jobs.install_library_job(str(staging))

    assert first == {"library": "H5P.Test-1.0.1", "installed": True}
    assert second["installed"] is False
    assert run_async(manager.get_id(LibraryName("H5P.Test", 1, 0))) == 1


def test_install_library_job_reraises(manager, make_library, monkeypatch):
    monkeypatch.setattr(jobs, "get_library_manager", lambda: manager)
    staging = make_library(preloadedJs=[{"path": "a.js"}])

    with pytest.raises(LibraryValidationError):
        jobs.install_library_job(str(staging), restricted=True)

    assert run_async(manager.get_id(LibraryName("H5P.Test", 1, 0))) is None


def test_install_library_job_logs_unreadable_staging_dir(manager, tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(jobs, "get_library_manager", lambda: manager)

    with caplog.at_level(logging.ERROR, logger=jobs.__name__):
        with pytest.raises(LibraryMetadataError):
            jobs.install_library_job(str(tmp_path))

    [record] = [r for r in caplog.records if r.name == jobs.__name__]
    assert record.directory == str(tmp_path)
    assert record.library is None
