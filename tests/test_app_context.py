"""Tests for wiring the core from settings, including an end-to-end conversion."""

import time
from pathlib import Path

import pytest

from conftest import FakeRunner
from weblibri.catalog.connectors import LocalSource, RemoteMirrorSource
from weblibri.core.cache import is_ready
from weblibri.core.config import Settings
from weblibri.main import create_app_context, resolve_data_dir


def _settings(tmp_path, metadata_db, data_dir=None, **overrides):
    return Settings(
        metadata_db=str(metadata_db),
        cache_dir=tmp_path / "cache",
        data_dir=data_dir,
        mirror_path=tmp_path / "mirror.db",
        **overrides,
    )


class TestResolveDataDir:
    def test_defaults_to_database_directory(self, tmp_path, catalog_db):
        assert resolve_data_dir(_settings(tmp_path, catalog_db)) == catalog_db.parent

    def test_explicit_data_dir_wins(self, tmp_path, catalog_db):
        settings = _settings(tmp_path, catalog_db, data_dir=tmp_path / "elsewhere")
        assert resolve_data_dir(settings) == tmp_path / "elsewhere"

    def test_remote_requires_data_dir(self, tmp_path):
        with pytest.raises(ValueError, match="DATA_DIR"):
            resolve_data_dir(_settings(tmp_path, "s3://bucket/metadata.db"))


class TestCreateAppContext:
    def test_local_wiring_without_worker(self, tmp_path, catalog_db):
        context = create_app_context(_settings(tmp_path, catalog_db, queue_capacity=7), start_worker=False)

        assert isinstance(context.connector, LocalSource)
        assert context.queue.capacity == 7
        assert not context.worker.is_running

    def test_remote_wiring(self, tmp_path):
        settings = _settings(tmp_path, "s3://bucket/metadata.db", data_dir=tmp_path / "library")
        context = create_app_context(settings, start_worker=False)

        assert isinstance(context.connector, RemoteMirrorSource)

    def test_end_to_end_conversion(self, tmp_path, catalog_db):
        """A readiness miss queues the book and the worker populates the cache."""
        source = catalog_db.parent / "Frank Herbert" / "Dune (2)" / "Dune - Frank Herbert.azw3"
        source.parent.mkdir(parents=True)
        source.write_bytes(b"azw3")
        runner = FakeRunner()

        context = create_app_context(_settings(tmp_path, catalog_db), runner=runner)
        try:
            assert context.reader.reader_status(2).is_ready is False

            cache_dir = tmp_path / "cache" / "2"
            deadline = time.monotonic() + 5
            while not is_ready(cache_dir) and time.monotonic() < deadline:
                time.sleep(0.01)

            # stop() returns once the in-flight job, including cleanup, has finished.
            context.worker.stop(timeout=5)

            assert context.reader.reader_status(2).is_ready is True
            assert runner.programs == ["ebook-convert", "unzip"]
            assert not list((tmp_path / "cache").glob("*.epub"))
        finally:
            context.worker.stop(timeout=5)
