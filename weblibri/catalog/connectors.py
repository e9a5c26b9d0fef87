"""Where the catalog database lives: a local file or a remote mirror."""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from weblibri.catalog.mirror import DEFAULT_MIRROR_PATH, MetadataMirror, open_readonly
from weblibri.core.logger import setup_logger

logger = setup_logger(__name__)

REMOTE_SCHEMES = ("s3://", "http://", "https://")


class DBConnector(ABC):
    """Hands out read-only connections to the catalog database."""

    @abstractmethod
    def get_connection(self) -> sqlite3.Connection:
        ...

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get a connection as a context manager that closes it on exit.

        Example:
            with connector.connection() as conn:
                books = list_books(conn)
        """
        conn = self.get_connection()
        try:
            yield conn
        finally:
            conn.close()


class LocalSource(DBConnector):
    """Catalog file on local disk; nothing to refresh."""

    def __init__(self, db_path: Union[str, Path]):
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def get_connection(self) -> sqlite3.Connection:
        if not self._db_path.exists():
            raise FileNotFoundError(f"Catalog database not found at {self._db_path}")
        return open_readonly(self._db_path)


class RemoteMirrorSource(DBConnector):
    """Catalog kept in object storage, served from a local mirror."""

    def __init__(self, mirror: MetadataMirror):
        self._mirror = mirror

    @property
    def mirror(self) -> MetadataMirror:
        return self._mirror

    def get_connection(self) -> sqlite3.Connection:
        return self._mirror.get_connection()


def is_remote_location(metadata_db: str) -> bool:
    return metadata_db.strip().lower().startswith(REMOTE_SCHEMES)


def create_connector(
    metadata_db: str,
    region: str = "us-east-1",
    mirror_path: Union[str, Path] = DEFAULT_MIRROR_PATH,
) -> DBConnector:
    """Pick the connector variant for a configured metadata location."""
    if is_remote_location(metadata_db):
        logger.info(f"Using remote catalog {metadata_db} mirrored at {mirror_path}")
        return RemoteMirrorSource(MetadataMirror(metadata_db, region=region, local_path=Path(mirror_path)))

    logger.info(f"Using local catalog {metadata_db}")
    return LocalSource(metadata_db)
