"""Core module - shared models, queue, cache probe and logging."""

from weblibri.core.models import BookRecord, ConversionJob, ConversionOutcome, ConversionStage
from weblibri.core.queue import DEFAULT_QUEUE_CAPACITY, JobQueue
from weblibri.core.cache import READER_MARKER_FILE, is_ready, reader_cache_dir
from weblibri.core.logger import setup_logger
