"""Data structures shared by the conversion pipeline and the catalog."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List


@dataclass(frozen=True)
class ConversionJob:
    """A request to materialize the reader rendition of one source file.

    Immutable once queued. The worker consumes each job exactly once and
    never retries it.
    """

    source_path: Path
    destination_dir: Path

    def __post_init__(self):
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "source_path", Path(self.source_path))
        object.__setattr__(self, "destination_dir", Path(self.destination_dir))


class ConversionStage(str, Enum):
    """Pipeline stages that can fail a job."""

    ENSURE_EPUB = "ensure_epub"
    EXTRACT = "extract"
    CLEANUP = "cleanup"


class ConversionOutcome(str, Enum):
    CONVERTED = "converted"
    CACHED = "cached"
    FAILED = "failed"


@dataclass
class BookRecord:
    """A catalog row with the formats stored for it."""

    id: int
    title: str
    author_sort: str
    uuid: str
    available_formats: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author_sort": self.author_sort,
            "uuid": self.uuid,
            "available_data": list(self.available_formats),
        }
