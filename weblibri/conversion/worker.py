"""Single background worker that turns queued books into reader renditions.

Each job walks Start -> SkipIfCached -> (EnsureEpub) -> Extract -> (Cleanup) -> Done.
Non-EPUB sources are converted to a temporary EPUB next to the destination
directory, the EPUB is unzipped into a hidden staging directory that is then
renamed to the destination, and the temporary file is removed. Jobs run
strictly one at a time.
"""

import os
import shutil
import threading
from pathlib import Path
from threading import Event
from typing import Optional, Tuple

from weblibri.core.cache import is_ready
from weblibri.core.logger import setup_logger
from weblibri.core.models import ConversionJob, ConversionOutcome
from weblibri.core.queue import JobQueue
from weblibri.conversion.commands import (
    DEFAULT_CONVERTER_BIN,
    DEFAULT_EXTRACTOR_BIN,
    CommandRunner,
    SubprocessRunner,
    build_convert_command,
    build_extract_command,
)
from weblibri.conversion.errors import ConversionError, ConversionErrorKind

logger = setup_logger(__name__)

EPUB_SUFFIX = ".epub"

# Queue poll interval used only when the worker can be stopped.
STOP_POLL_INTERVAL = 0.5


def temporary_epub_path(destination_dir: Path) -> Path:
    """Where a converted EPUB is written before extraction: ``/cache/123`` -> ``/cache/123.epub``."""
    return destination_dir.with_name(destination_dir.name + EPUB_SUFFIX)


def staging_dir_for(destination_dir: Path) -> Path:
    """Hidden sibling directory the archive is unpacked into before publishing."""
    return destination_dir.with_name(f".{destination_dir.name}.partial")


def discard_temporary_epub(epub_path: Path) -> None:
    """Remove a temporary EPUB left by a job that did not finish."""
    try:
        epub_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove temporary EPUB {epub_path}: {e}")


class ConversionWorker:
    """Consumes a JobQueue and populates the reader cache."""

    def __init__(
        self,
        job_queue: JobQueue,
        runner: Optional[CommandRunner] = None,
        converter_bin: str = DEFAULT_CONVERTER_BIN,
        extractor_bin: str = DEFAULT_EXTRACTOR_BIN,
    ):
        self._queue = job_queue
        self._runner = runner or SubprocessRunner()
        self._converter_bin = converter_bin
        self._extractor_bin = extractor_bin
        self._stop_event = Event()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _ensure_epub(self, job: ConversionJob) -> Tuple[Path, bool]:
        """Return the EPUB to extract and whether it is a temporary file."""
        if job.source_path.suffix.lower() == EPUB_SUFFIX:
            logger.debug(f"Source is already EPUB: {job.source_path}")
            return job.source_path, False

        epub_path = temporary_epub_path(job.destination_dir)
        logger.info(f"Converting {job.source_path} to EPUB at {epub_path}")
        command = build_convert_command(self._converter_bin, job.source_path, epub_path)
        try:
            exit_code = self._runner.run(command)
        except OSError as e:
            raise ConversionError(ConversionErrorKind.CONVERTER_LAUNCH, job, cause=e) from e
        if exit_code != 0:
            # The converter may have written part of the output before failing.
            discard_temporary_epub(epub_path)
            raise ConversionError(ConversionErrorKind.CONVERTER_EXIT, job, exit_code=exit_code)
        return epub_path, True

    def _extract(self, job: ConversionJob, epub_path: Path) -> None:
        """Unpack into a staging directory, then rename it into place.

        The marker file only becomes visible under the destination once every
        file of the archive is there.
        """
        staging = staging_dir_for(job.destination_dir)
        shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Extracting {epub_path} to {job.destination_dir}")
        command = build_extract_command(self._extractor_bin, epub_path, staging)
        try:
            try:
                exit_code = self._runner.run(command)
            except OSError as e:
                raise ConversionError(ConversionErrorKind.EXTRACTOR_LAUNCH, job, cause=e) from e
            if exit_code != 0:
                raise ConversionError(ConversionErrorKind.EXTRACTOR_EXIT, job, exit_code=exit_code)
            self._publish(job, staging)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _publish(self, job: ConversionJob, staging: Path) -> None:
        destination = job.destination_dir
        try:
            if destination.exists():
                # Not ready (checked before the job started), so only a leftover partial copy.
                shutil.rmtree(destination)
            os.replace(staging, destination)
        except OSError as e:
            raise ConversionError(ConversionErrorKind.PUBLISH, job, cause=e) from e

    def _cleanup(self, job: ConversionJob, epub_path: Path) -> None:
        try:
            epub_path.unlink()
        except OSError as e:
            raise ConversionError(ConversionErrorKind.CLEANUP, job, cause=e) from e
        logger.debug(f"Removed temporary EPUB {epub_path}")

    def process(self, job: ConversionJob) -> ConversionOutcome:
        """Run one job through the pipeline.

        Raises:
            ConversionError: when any stage fails. The destination is not
                rolled back after a cleanup failure since it is already usable.
        """
        if is_ready(job.destination_dir):
            logger.debug(f"Reader cache already present: {job.destination_dir}")
            return ConversionOutcome.CACHED

        job.destination_dir.parent.mkdir(parents=True, exist_ok=True)
        epub_path, is_temporary = self._ensure_epub(job)

        try:
            self._extract(job, epub_path)
        except Exception:
            if is_temporary:
                discard_temporary_epub(epub_path)
            raise

        if is_temporary:
            self._cleanup(job, epub_path)

        logger.info(f"Reader cache ready: {job.destination_dir}")
        return ConversionOutcome.CONVERTED

    def handle(self, job: ConversionJob) -> ConversionOutcome:
        """Process a job, logging any failure instead of raising it."""
        try:
            return self.process(job)
        except ConversionError as e:
            logger.warning(f"Conversion failed: {e}")
        except Exception as e:
            logger.error_trace(
                f"Unexpected error converting {job.source_path} -> {job.destination_dir}: {e}"
            )
        return ConversionOutcome.FAILED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self, stop_event: Optional[Event] = None) -> None:
        """Drain the queue until ``stop_event`` is set (forever when None)."""
        timeout = STOP_POLL_INTERVAL if stop_event is not None else None
        while stop_event is None or not stop_event.is_set():
            job = self._queue.get(timeout=timeout)
            if job is None:
                continue
            self.handle(job)

    def start(self) -> threading.Thread:
        """Start the worker thread. Safe to call multiple times."""
        with self._start_lock:
            if self._thread is not None and self._thread.is_alive():
                logger.debug("Conversion worker already started")
                return self._thread

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self.run,
                args=(self._stop_event,),
                daemon=True,
                name="ConversionWorker",
            )
            self._thread.start()

        logger.info(f"Conversion worker started (converter: {self._converter_bin})")
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the worker thread to exit after the current job and wait for it."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
