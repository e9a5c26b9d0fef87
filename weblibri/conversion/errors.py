"""Job-fatal conversion failures."""

from enum import Enum
from typing import Optional

from weblibri.core.models import ConversionJob, ConversionStage


class ConversionErrorKind(str, Enum):
    CONVERTER_LAUNCH = "converter_launch"
    CONVERTER_EXIT = "converter_exit"
    EXTRACTOR_LAUNCH = "extractor_launch"
    EXTRACTOR_EXIT = "extractor_exit"
    PUBLISH = "publish"
    CLEANUP = "cleanup"


_STAGE_BY_KIND = {
    ConversionErrorKind.CONVERTER_LAUNCH: ConversionStage.ENSURE_EPUB,
    ConversionErrorKind.CONVERTER_EXIT: ConversionStage.ENSURE_EPUB,
    ConversionErrorKind.EXTRACTOR_LAUNCH: ConversionStage.EXTRACT,
    ConversionErrorKind.EXTRACTOR_EXIT: ConversionStage.EXTRACT,
    ConversionErrorKind.PUBLISH: ConversionStage.EXTRACT,
    ConversionErrorKind.CLEANUP: ConversionStage.CLEANUP,
}

_SUMMARY_BY_KIND = {
    ConversionErrorKind.CONVERTER_LAUNCH: "Failed to launch converter",
    ConversionErrorKind.CONVERTER_EXIT: "Converter exited with an error code",
    ConversionErrorKind.EXTRACTOR_LAUNCH: "Failed to launch extractor",
    ConversionErrorKind.EXTRACTOR_EXIT: "Extractor exited with an error code",
    ConversionErrorKind.PUBLISH: "Failed to move extracted files into the reader cache",
    ConversionErrorKind.CLEANUP: "Failed to remove temporary epub file",
}


class ConversionError(Exception):
    """Raised when a conversion job cannot complete.

    Only the current job is affected; the worker logs it and moves on.
    """

    def __init__(
        self,
        kind: ConversionErrorKind,
        job: ConversionJob,
        *,
        exit_code: Optional[int] = None,
        cause: Optional[OSError] = None,
    ):
        self.kind = kind
        self.stage = _STAGE_BY_KIND[kind]
        self.job = job
        self.exit_code = exit_code
        self.cause = cause
        super().__init__(self._describe())
        if cause is not None:
            self.__cause__ = cause

    def _describe(self) -> str:
        detail = ""
        if self.exit_code is not None:
            detail = f": exit code {self.exit_code}"
        elif self.cause is not None:
            detail = f": {self.cause}"
        return (
            f"{_SUMMARY_BY_KIND[self.kind]}{detail} "
            f"[stage={self.stage.value}, source={self.job.source_path}, "
            f"destination={self.job.destination_dir}]"
        )
