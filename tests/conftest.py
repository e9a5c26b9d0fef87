"""
Pytest configuration and shared fixtures.
"""

import os
import sqlite3
import sys
import tempfile
from pathlib import Path

# Set environment variables BEFORE importing the application
# so logging and config never touch system paths like /var/log or /config.
_temp_base = tempfile.mkdtemp(prefix="weblibri_test_")

os.environ["LOG_ROOT"] = _temp_base
os.environ["CONFIG_DIR"] = os.path.join(_temp_base, "config")
os.environ.setdefault("ENABLE_LOGGING", "false")

os.makedirs(os.path.join(_temp_base, "weblibri"), exist_ok=True)  # LOG_DIR
os.makedirs(os.path.join(_temp_base, "config"), exist_ok=True)

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from weblibri.core.cache import READER_MARKER_FILE


CATALOG_SCHEMA = """
CREATE TABLE books (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL DEFAULT 'Unknown',
    sort        TEXT,
    author_sort TEXT,
    uuid        TEXT,
    path        TEXT NOT NULL DEFAULT '',
    has_cover   BOOL DEFAULT 0
);

CREATE TABLE data (
    id                INTEGER PRIMARY KEY,
    book              INTEGER NOT NULL,
    format            TEXT NOT NULL COLLATE NOCASE,
    uncompressed_size INTEGER NOT NULL,
    name              TEXT NOT NULL
);
"""


def create_catalog(db_path: Path, books) -> Path:
    """Create a minimal Calibre-shaped metadata.db.

    ``books`` is a list of (id, title, author_sort, uuid, path, [(format, name), ...]).
    """
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(CATALOG_SCHEMA)
        for book_id, title, author_sort, uuid, path, formats in books:
            conn.execute(
                "INSERT INTO books (id, title, author_sort, uuid, path) VALUES (?, ?, ?, ?, ?)",
                (book_id, title, author_sort, uuid, path),
            )
            for fmt, name in formats:
                conn.execute(
                    "INSERT INTO data (book, format, uncompressed_size, name) VALUES (?, ?, ?, ?)",
                    (book_id, fmt, 1024, name),
                )
        conn.commit()
    finally:
        conn.close()
    return db_path


SAMPLE_BOOKS = [
    (
        1,
        "The Way of Kings",
        "Sanderson, Brandon",
        "uuid-1",
        "Brandon Sanderson/The Way of Kings (1)",
        [("MOBI", "The Way of Kings - Brandon Sanderson"), ("EPUB", "The Way of Kings - Brandon Sanderson")],
    ),
    (
        2,
        "Dune",
        "Herbert, Frank",
        "uuid-2",
        "Frank Herbert/Dune (2)",
        [("PDF", "Dune - Frank Herbert"), ("AZW3", "Dune - Frank Herbert")],
    ),
    (
        3,
        "No Files",
        "Nobody",
        "uuid-3",
        "Nobody/No Files (3)",
        [],
    ),
    (
        4,
        "Odd Format",
        "Someone",
        "uuid-4",
        "Someone/Odd Format (4)",
        [("TXT", "Odd Format - Someone")],
    ),
]


@pytest.fixture
def catalog_db(tmp_path):
    """A metadata.db with SAMPLE_BOOKS in a library directory."""
    library = tmp_path / "library"
    library.mkdir()
    return create_catalog(library / "metadata.db", SAMPLE_BOOKS)


class FakeRunner:
    """CommandRunner stand-in for ebook-convert and unzip.

    The converter writes the target EPUB when the source exists and exits 1
    otherwise. The extractor writes a small rendition including the marker
    file when the archive exists.
    """

    def __init__(self, converter_exit=None, extractor_exit=None, launch_error=None):
        self.calls = []
        self.converter_exit = converter_exit
        self.extractor_exit = extractor_exit
        self.launch_error = launch_error

    def run(self, argv):
        argv = [str(arg) for arg in argv]
        self.calls.append(argv)
        if self.launch_error is not None and argv[0] == self.launch_error[0]:
            raise self.launch_error[1]

        if "-d" in argv:
            return self._extract(argv)
        return self._convert(argv)

    def _convert(self, argv):
        if self.converter_exit is not None:
            return self.converter_exit
        source, target = Path(argv[1]), Path(argv[2])
        if not source.exists():
            return 1
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"PK converted")
        return 0

    def _extract(self, argv):
        if self.extractor_exit is not None:
            return self.extractor_exit
        destination, archive = Path(argv[2]), Path(argv[3])
        if not archive.exists():
            return 9
        (destination / "OEBPS").mkdir(parents=True, exist_ok=True)
        (destination / "OEBPS" / "content.opf").write_text("<package/>")
        marker = destination / READER_MARKER_FILE
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_text("<container/>")
        return 0

    @property
    def programs(self):
        return [argv[0] for argv in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()
