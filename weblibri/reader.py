"""Reader-facing operations the web layer calls into.

Checking a book's reader status doubles as the trigger for its conversion:
a miss resolves the best stored format and queues it for the worker.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from weblibri.catalog.books import get_book_file, list_books, select_preferred_source
from weblibri.catalog.connectors import DBConnector
from weblibri.core.cache import is_ready, reader_cache_dir
from weblibri.core.logger import setup_logger
from weblibri.core.models import BookRecord, ConversionJob
from weblibri.core.queue import JobQueue

logger = setup_logger(__name__)


@dataclass(frozen=True)
class ReaderStatus:
    is_ready: bool
    uri: str
    scheduled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"is_ready": self.is_ready, "uri": self.uri}


class ReaderService:
    def __init__(
        self,
        connector: DBConnector,
        job_queue: JobQueue,
        cache_dir: Union[str, Path],
        data_dir: Union[str, Path],
        app_prefix: str = "",
    ):
        self._connector = connector
        self._queue = job_queue
        self._cache_dir = Path(cache_dir).absolute()
        self._data_dir = Path(data_dir).absolute()
        self._app_prefix = app_prefix.rstrip("/")

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def reader_uri(self, book_id: int) -> str:
        return f"{self._app_prefix}/reader/{book_id}"

    def reader_dir(self, book_id: int) -> Path:
        return reader_cache_dir(self._cache_dir, book_id)

    def reader_status(self, book_id: int, enqueue: bool = True) -> ReaderStatus:
        """Report whether the book's rendition is ready, queueing it if not."""
        reader_dir = self.reader_dir(book_id)
        uri = self.reader_uri(book_id)

        if is_ready(reader_dir):
            return ReaderStatus(is_ready=True, uri=uri)

        if not enqueue:
            logger.debug(f"Status checked for book {book_id}, but didn't enqueue the task")
            return ReaderStatus(is_ready=False, uri=uri)

        return ReaderStatus(is_ready=False, uri=uri, scheduled=self.schedule_conversion(book_id))

    def schedule_conversion(self, book_id: int) -> bool:
        """Queue the preferred source of a book for conversion.

        Returns False when the book has no stored files or the queue is full;
        the caller decides whether to retry later.
        """
        with self._connector.connection() as conn:
            source = select_preferred_source(conn, book_id)

        if source is None:
            logger.warning(f"Book {book_id} has no files to convert")
            return False

        job = ConversionJob(
            source_path=self._data_dir / source.relative_path,
            destination_dir=self.reader_dir(book_id),
        )
        if not self._queue.put(job):
            logger.warning(f"Could not schedule conversion of book {book_id} now")
            return False

        logger.debug(f"Status checked, and enqueued {source.format} of book {book_id}")
        return True

    def book_file(self, book_id: int, fmt: str) -> Optional[Tuple[Path, str]]:
        """Absolute path and download filename of one stored format, or None."""
        with self._connector.connection() as conn:
            book_file = get_book_file(conn, book_id, fmt.upper())
        if book_file is None:
            return None
        full_path = self._data_dir / book_file.relative_path
        logger.debug(f"Serve {full_path}")
        return full_path, book_file.download_name

    def list_books(self) -> List[BookRecord]:
        with self._connector.connection() as conn:
            return list_books(conn)
