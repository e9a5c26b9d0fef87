"""Wiring of the conversion pipeline and catalog access from configuration."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from weblibri.catalog.connectors import DBConnector, create_connector, is_remote_location
from weblibri.conversion.commands import CommandRunner
from weblibri.conversion.worker import ConversionWorker
from weblibri.core.config import Settings, load_settings
from weblibri.core.logger import setup_logger
from weblibri.core.queue import JobQueue
from weblibri.reader import ReaderService

logger = setup_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    connector: DBConnector
    queue: JobQueue
    worker: ConversionWorker
    reader: ReaderService


def resolve_data_dir(settings: Settings) -> Path:
    """Library root that catalog paths are relative to.

    Remote catalogs carry no filesystem location, so DATA_DIR is required
    for them; local catalogs default to the database's directory.
    """
    if settings.data_dir is not None:
        return settings.data_dir
    if is_remote_location(settings.metadata_db):
        raise ValueError("DATA_DIR must be set explicitly when METADATA_DB is a remote URI")
    return Path(settings.metadata_db).absolute().parent


def create_app_context(
    settings: Optional[Settings] = None,
    runner: Optional[CommandRunner] = None,
    start_worker: bool = True,
) -> AppContext:
    settings = settings or load_settings()
    data_dir = resolve_data_dir(settings)

    connector = create_connector(settings.metadata_db, settings.s3_region, settings.mirror_path)
    job_queue = JobQueue(settings.queue_capacity)
    worker = ConversionWorker(
        job_queue,
        runner=runner,
        converter_bin=settings.converter_bin,
        extractor_bin=settings.extractor_bin,
    )
    reader = ReaderService(
        connector,
        job_queue,
        cache_dir=settings.cache_dir,
        data_dir=data_dir,
        app_prefix=settings.app_prefix,
    )

    if start_worker:
        logger.info("Starting e-book converter thread...")
        worker.start()

    return AppContext(
        settings=settings,
        connector=connector,
        queue=job_queue,
        worker=worker,
        reader=reader,
    )
