"""Conversion pipeline: external converter + archive extraction into the reader cache."""

from weblibri.conversion.commands import CommandRunner, SubprocessRunner
from weblibri.conversion.errors import ConversionError, ConversionErrorKind
from weblibri.conversion.worker import ConversionWorker
