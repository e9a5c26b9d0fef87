"""Tests for catalog connectors."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from conftest import SAMPLE_BOOKS, create_catalog
from weblibri.catalog.connectors import (
    LocalSource,
    RemoteMirrorSource,
    create_connector,
    is_remote_location,
)
from weblibri.catalog.mirror import MetadataMirror
from weblibri.catalog.remote import S3ObjectStore


class TestLocalSource:
    def test_opens_read_only(self, catalog_db):
        source = LocalSource(catalog_db)
        with source.connection() as conn:
            assert conn.execute("SELECT count(*) FROM books").fetchone()[0] == 4
            with pytest.raises(sqlite3.OperationalError):
                conn.execute("DELETE FROM books")

    def test_new_connection_every_call(self, catalog_db):
        source = LocalSource(catalog_db)
        first = source.get_connection()
        second = source.get_connection()
        try:
            assert first is not second
        finally:
            first.close()
            second.close()

    @pytest.mark.parametrize("folder", ["Calibre #1", "50% off", "What? Library", "My Books"])
    def test_library_folder_with_uri_characters(self, tmp_path, folder):
        library = tmp_path / folder
        library.mkdir()
        db_path = create_catalog(library / "metadata.db", SAMPLE_BOOKS)

        with LocalSource(db_path).connection() as conn:
            assert conn.execute("SELECT count(*) FROM books").fetchone()[0] == 4

        assert sorted(p.name for p in tmp_path.iterdir()) == [folder]

    def test_relative_path(self, catalog_db, monkeypatch):
        monkeypatch.chdir(catalog_db.parent)
        with LocalSource("metadata.db").connection() as conn:
            assert conn.execute("SELECT count(*) FROM books").fetchone()[0] == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LocalSource(tmp_path / "missing.db").get_connection()

    def test_connection_context_closes(self, catalog_db):
        with LocalSource(catalog_db).connection() as conn:
            pass
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")


def test_remote_source_delegates_to_mirror():
    mirror = MagicMock(spec=MetadataMirror)
    sentinel = MagicMock()
    mirror.get_connection.return_value = sentinel

    assert RemoteMirrorSource(mirror).get_connection() is sentinel
    mirror.get_connection.assert_called_once_with()


class TestCreateConnector:
    @pytest.mark.parametrize(
        "location, remote",
        [
            ("s3://bucket/metadata.db", True),
            ("https://example.com/metadata.db", True),
            ("S3://bucket/metadata.db", True),
            ("/library/metadata.db", False),
            ("library/metadata.db", False),
        ],
    )
    def test_is_remote_location(self, location, remote):
        assert is_remote_location(location) is remote

    def test_local(self, catalog_db):
        connector = create_connector(str(catalog_db))
        assert isinstance(connector, LocalSource)
        assert connector.db_path == catalog_db

    def test_remote(self, tmp_path):
        connector = create_connector("s3://bucket/lib/metadata.db", "eu-west-1", tmp_path / "mirror.db")
        assert isinstance(connector, RemoteMirrorSource)
        assert str(connector.mirror.location) == "s3://bucket/lib/metadata.db"
        assert isinstance(connector.mirror.store, S3ObjectStore)
        assert connector.mirror.store.client.meta.region_name == "eu-west-1"
        assert connector.mirror.local_path == tmp_path / "mirror.db"
