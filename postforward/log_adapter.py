"""Serialize log records and dispatch them to the remote and console sinks."""

import json
import logging

from postforward.records import LogRecord
from postforward.sinks import LogSink
from postforward.validator import RecordValidator

logger = logging.getLogger(__name__)


class LogAdapter:
    """Single emission point for every LogRecord.

    The remote sink always receives a record: either the full one, or a
    minimal fallback when the full one fails to serialize or validate.
    `emit` never raises.
    """

    def __init__(self, remote: LogSink, console: LogSink, validator: RecordValidator | None = None):
        self._remote = remote
        self._console = console
        self._validator = validator

    def serialize(self, record: LogRecord) -> str:
        """Return the indented JSON for *record*, checked by a re-parse.

        Raises TypeError or ValueError when the record cannot be represented.
        """
        message = json.dumps(record.to_dict(), indent=2, allow_nan=False)
        decoded = json.loads(message)
        if self._validator is not None:
            is_valid, errors = self._validator.validate(decoded)
            if not is_valid:
                raise ValueError("; ".join(errors))
        return message

    def emit(self, record: LogRecord) -> None:
        try:
            message = self.serialize(record)
        except (TypeError, ValueError, RecursionError) as e:
            logger.warning("%s record %s failed serialization: %s",
                           record.log_type.value, record.log_id, e)
            fallback = LogRecord.fallback(record.log_type)
            message = json.dumps(fallback.to_dict(), indent=2)

        try:
            self._remote.log(message)
        except Exception as e:
            logger.error("Remote log sink failed for %s: %s", record.log_type.value, e)

        try:
            self._console.log(json.dumps(record.to_console(), indent=2, default=str))
        except Exception as e:
            logger.error("Console log sink failed for %s: %s", record.log_type.value, e)
