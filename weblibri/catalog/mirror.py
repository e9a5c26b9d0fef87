"""Local read-only mirror of a remotely stored catalog database."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from weblibri.catalog.errors import AmbiguousTransportError, MirrorTransportError
from weblibri.catalog.remote import FetchResult, FetchStatus, ObjectLocation, create_object_store, parse_object_uri
from weblibri.core.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_MIRROR_PATH = Path("/tmp/cached_metadata.db")


class ObjectStore(Protocol):
    def fetch(
        self,
        location: ObjectLocation,
        dest_path: Path,
        if_modified_since: Optional[str] = None,
    ) -> FetchResult:
        ...


def open_readonly(db_path: Path) -> sqlite3.Connection:
    """Open a SQLite file read-only with Row access.

    The path is percent-encoded into the URI so library folders named like
    "Calibre #1" or "50% off" open the file they name.
    """
    conn = sqlite3.connect(Path(db_path).absolute().as_uri() + "?mode=ro", uri=True)
    conn.row_factory = sqlite3.Row
    return conn


@dataclass
class MirrorState:
    location: ObjectLocation
    local_path: Path
    last_modified: Optional[str] = None


class MetadataMirror:
    """Keeps ``local_path`` in sync with the remote catalog on demand.

    The decide-fetch-update sequence runs under one lock, so concurrent
    callers never start duplicate downloads and ``last_modified`` never
    advances ahead of the file it describes.
    """

    def __init__(
        self,
        uri: str,
        region: str = "us-east-1",
        local_path: Path = DEFAULT_MIRROR_PATH,
        store: Optional[ObjectStore] = None,
    ):
        location = parse_object_uri(uri)
        self._state = MirrorState(location=location, local_path=Path(local_path))
        self._store = store or create_object_store(location, region)
        self._lock = threading.Lock()

    @property
    def location(self) -> ObjectLocation:
        return self._state.location

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def local_path(self) -> Path:
        return self._state.local_path

    @property
    def last_modified(self) -> Optional[str]:
        with self._lock:
            return self._state.last_modified

    def refresh(self) -> bool:
        """Bring the local copy up to date. Returns True if a new copy was downloaded.

        Raises:
            MirrorError: the key is missing, credentials were rejected, or the
                store failed in a way that cannot be waited out.
        """
        with self._lock:
            state = self._state
            # A stale timestamp without the file it described would keep us on 304s forever.
            since = state.last_modified if state.local_path.exists() else None

            try:
                result = self._store.fetch(state.location, state.local_path, if_modified_since=since)
            except AmbiguousTransportError as e:
                # An error response we cannot classify is treated as "not modified":
                # a stale catalog beats an outage, but a real failure also lands here.
                logger.info_trace(f"DB isn't modified since {since!r} (assumed after fetch error: {e})")
                return False

            if result.status is FetchStatus.NOT_MODIFIED:
                logger.info(f"DB isn't modified since {since!r}")
                return False

            logger.info(f"Last modified will be updated to: {result.last_modified!r}")
            state.last_modified = result.last_modified
            return True

    def get_connection(self) -> sqlite3.Connection:
        """Refresh if needed and return a read-only handle on the local copy."""
        self.refresh()
        local_path = self._state.local_path
        if not local_path.exists():
            raise MirrorTransportError(
                f"No local copy of {self.location} at {local_path}", location=str(self.location)
            )
        return open_readonly(local_path)
