"""Reader cache readiness checks.

A rendition directory is ready once the EPUB container descriptor exists in it.
Extraction writes that file as part of unpacking the whole archive, so its
presence is the only signal the rest of the server trusts.
"""

from pathlib import Path
from typing import Union

READER_MARKER_FILE = "META-INF/container.xml"


def is_ready(directory: Union[str, Path]) -> bool:
    """Return True if the marker file exists directly under ``directory``.

    I/O errors count as "not ready"; a missing cache is always recoverable.
    """
    try:
        return (Path(directory) / READER_MARKER_FILE).is_file()
    except (OSError, ValueError):
        return False


def reader_cache_dir(cache_root: Union[str, Path], book_id: int) -> Path:
    """Directory holding the extracted rendition for a book."""
    return Path(cache_root) / str(book_id)
