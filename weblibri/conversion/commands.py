"""External process invocation for the converter and the extractor."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Protocol, Sequence

from weblibri.core.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_CONVERTER_BIN = "ebook-convert"
DEFAULT_EXTRACTOR_BIN = "unzip"


class CommandRunner(Protocol):
    """Runs an external command and reports its exit status.

    Implementations raise OSError when the process cannot be started.
    """

    def run(self, argv: Sequence[str]) -> int:
        ...


class SubprocessRunner:
    """CommandRunner backed by subprocess.run.

    No timeout is applied: a hung converter holds the worker thread.
    """

    def run(self, argv: Sequence[str]) -> int:
        args = [str(arg) for arg in argv]
        logger.debug(f"Running: {' '.join(args)}")
        result = subprocess.run(args, capture_output=True, text=True)
        if result.returncode != 0 and result.stderr:
            logger.debug(f"{args[0]} stderr: {result.stderr.strip()[:500]}")
        return result.returncode


def build_convert_command(converter_bin: str, source: Path, target: Path) -> List[str]:
    return [
        converter_bin,
        str(source),
        str(target),
        "--no-default-epub-cover",
        "--output-profile",
        "tablet",
    ]


def build_extract_command(extractor_bin: str, archive: Path, destination: Path) -> List[str]:
    return [extractor_bin, "-d", str(destination), str(archive)]
