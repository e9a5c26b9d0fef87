"""Read-only queries over the Calibre catalog schema.

Only ``books(id, title, author_sort, uuid, path)`` and
``data(book, format, name)`` are relied upon.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from weblibri.core.logger import setup_logger
from weblibri.core.models import BookRecord

logger = setup_logger(__name__)

# All supported source formats in preference order
PREFERRED_FORMATS = ("EPUB", "HTMLZ", "AZW3", "AZW4", "MOBI", "PDF")

_BOOK_LIST_SQL = """
SELECT books.id, books.title, books.author_sort, books.uuid, group_concat(data.format)
  FROM books
  INNER JOIN data ON data.book = books.id
 GROUP BY books.id
 ORDER BY books.id
"""

_BOOK_FILE_SQL = """
SELECT books.title, books.path, data.name, data.format
  FROM books
  INNER JOIN data ON data.book = books.id
 WHERE books.id = :book_id AND data.format = :fmt
"""

_BOOK_FORMATS_SQL = """
SELECT books.title, books.path, data.name, data.format
  FROM books
  INNER JOIN data ON data.book = books.id
 WHERE books.id = :book_id
"""


@dataclass(frozen=True)
class BookFile:
    """One stored format of a book, relative to the library root."""

    title: str
    book_dir: str
    name: str
    format: str

    @property
    def extension(self) -> str:
        return self.format.lower()

    @property
    def relative_path(self) -> Path:
        return Path(self.book_dir) / f"{self.name}.{self.extension}"

    @property
    def download_name(self) -> str:
        return f"{self.title}.{self.extension}"


def format_rank(fmt: str) -> int:
    """Position in PREFERRED_FORMATS; unknown formats rank last."""
    try:
        return PREFERRED_FORMATS.index(fmt.upper())
    except ValueError:
        return len(PREFERRED_FORMATS)


def iter_books(conn: sqlite3.Connection) -> Iterator[BookRecord]:
    """Yield every book that has at least one stored format."""
    for row in conn.execute(_BOOK_LIST_SQL):
        formats = row[4] or ""
        yield BookRecord(
            id=row[0],
            title=row[1],
            author_sort=row[2],
            uuid=row[3],
            available_formats=[fmt for fmt in formats.split(",") if fmt],
        )


def list_books(conn: sqlite3.Connection) -> List[BookRecord]:
    return list(iter_books(conn))


def _row_to_file(row) -> BookFile:
    return BookFile(title=row[0], book_dir=row[1], name=row[2], format=row[3])


def get_book_file(conn: sqlite3.Connection, book_id: int, fmt: str) -> Optional[BookFile]:
    """Look up one stored format of a book. ``fmt`` matches data.format exactly (e.g. "EPUB")."""
    row = conn.execute(_BOOK_FILE_SQL, {"book_id": book_id, "fmt": fmt}).fetchone()
    if row is None:
        return None
    return _row_to_file(row)


def select_preferred_source(conn: sqlite3.Connection, book_id: int) -> Optional[BookFile]:
    """Pick the stored format that converts best, per PREFERRED_FORMATS.

    Ties keep the first row returned. Returns None for a book without files.
    """
    best: Optional[BookFile] = None
    best_rank = len(PREFERRED_FORMATS) + 1
    for row in conn.execute(_BOOK_FORMATS_SQL, {"book_id": book_id}):
        candidate = _row_to_file(row)
        rank = format_rank(candidate.format)
        if rank < best_rank:
            best, best_rank = candidate, rank

    if best is None:
        logger.debug(f"No stored formats for book {book_id}")
    return best
