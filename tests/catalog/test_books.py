"""Tests for read-only catalog queries."""

from pathlib import Path

import pytest

from weblibri.catalog.books import (
    PREFERRED_FORMATS,
    format_rank,
    get_book_file,
    iter_books,
    list_books,
    select_preferred_source,
)
from weblibri.catalog.mirror import open_readonly


@pytest.fixture
def conn(catalog_db):
    connection = open_readonly(catalog_db)
    yield connection
    connection.close()


class TestListBooks:
    def test_lists_books_with_formats_only(self, conn):
        books = list_books(conn)
        assert [book.id for book in books] == [1, 2, 4]

    def test_record_fields(self, conn):
        book = list_books(conn)[0]
        assert book.title == "The Way of Kings"
        assert book.author_sort == "Sanderson, Brandon"
        assert book.uuid == "uuid-1"
        assert sorted(book.available_formats) == ["EPUB", "MOBI"]

    def test_to_dict_uses_available_data_key(self, conn):
        payload = list_books(conn)[1].to_dict()
        assert payload["id"] == 2
        assert sorted(payload["available_data"]) == ["AZW3", "PDF"]

    def test_iter_books_is_lazy(self, conn):
        iterator = iter_books(conn)
        assert next(iterator).id == 1


class TestGetBookFile:
    def test_resolves_relative_path(self, conn):
        book_file = get_book_file(conn, 1, "EPUB")
        assert book_file.relative_path == Path(
            "Brandon Sanderson/The Way of Kings (1)/The Way of Kings - Brandon Sanderson.epub"
        )
        assert book_file.download_name == "The Way of Kings.epub"

    def test_missing_format_returns_none(self, conn):
        assert get_book_file(conn, 2, "EPUB") is None

    def test_missing_book_returns_none(self, conn):
        assert get_book_file(conn, 999, "EPUB") is None


class TestSelectPreferredSource:
    def test_epub_wins(self, conn):
        assert select_preferred_source(conn, 1).format == "EPUB"

    def test_azw3_preferred_over_pdf(self, conn):
        source = select_preferred_source(conn, 2)
        assert source.format == "AZW3"
        assert source.relative_path == Path("Frank Herbert/Dune (2)/Dune - Frank Herbert.azw3")

    def test_unknown_format_still_selected(self, conn):
        assert select_preferred_source(conn, 4).format == "TXT"

    def test_book_without_files(self, conn):
        assert select_preferred_source(conn, 3) is None


@pytest.mark.parametrize(
    "fmt, expected",
    [("EPUB", 0), ("epub", 0), ("PDF", len(PREFERRED_FORMATS) - 1), ("CBZ", len(PREFERRED_FORMATS))],
)
def test_format_rank(fmt, expected):
    assert format_rank(fmt) == expected
