import logging
import sys
from typing import ClassVar, TextIO


class ContextFormatter(logging.Formatter):
    """Appends allow-listed context fields as ``key=value`` pairs.

    Only identifiers and counters are rendered; any other extra is dropped so
    that PHI passed by mistake never reaches the output.
    """

    SAFE_FIELDS: ClassVar[tuple[str, ...]] = (
        "batch_id",
        "job_id",
        "record_id",
        "attempt",
        "model_id",
    )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in self.SAFE_FIELDS
            if getattr(record, name, None) is not None
        ]
        if context:
            line = f"{line} [{' '.join(context)}]"
        return line


class Log:
    """Centralized logging for the clinote worker.

    Messages must never carry plaintext PHI, anonymization maps or keys:
    log ids, counts, lengths and placeholder names only.
    """

    _logger: logging.Logger = logging.getLogger("clinote")

    @classmethod
    def configure(cls, log_level: str, stream: TextIO | None = None) -> None:
        """Set the level and attach a single stream handler (stdout by default)."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setFormatter(ContextFormatter("%(asctime)s [%(levelname)s] %(message)s"))
            cls._logger.addHandler(handler)

    @classmethod
    def _extra(cls, context: dict[str, object]) -> dict[str, object]:
        return {k: v for k, v in context.items() if k in ContextFormatter.SAFE_FIELDS}

    @classmethod
    def info(cls, message: str, **context: object) -> None:
        cls._logger.info(message, extra=cls._extra(context))

    @classmethod
    def error(cls, message: str, **context: object) -> None:
        cls._logger.error(message, extra=cls._extra(context))

    @classmethod
    def warning(cls, message: str, **context: object) -> None:
        cls._logger.warning(message, extra=cls._extra(context))

    @classmethod
    def debug(cls, message: str, **context: object) -> None:
        cls._logger.debug(message, extra=cls._extra(context))
