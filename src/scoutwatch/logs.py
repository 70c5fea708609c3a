import logging
from collections import deque
from typing import Optional

from scoutwatch.config import settings

ROOT_LOGGER = "scoutwatch"


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.logging.level).upper(), logging.INFO),
        format=settings.logging.format,
    )


class OperatorLog(logging.Handler):
    """
    Bounded on-screen log for the operator.
    Keeps the newest ``max_lines`` messages; older lines fall off the front.
    Attach with ``install()`` and detach with ``close()``.
    """

    def __init__(self, max_lines: Optional[int] = None, level: int = logging.INFO):
        super().__init__(level=level)
        self.max_lines = max_lines or settings.logging.operator_log_lines
        self._lines: deque[str] = deque(maxlen=self.max_lines)
        self._logger: Optional[logging.Logger] = None
        self.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._lines.append(self.format(record))
        except Exception:
            self.handleError(record)

    def install(self, logger_name: str = ROOT_LOGGER) -> "OperatorLog":
        self._logger = logging.getLogger(logger_name)
        self._logger.addHandler(self)
        if self._logger.level == logging.NOTSET or self._logger.level > self.level:
            self._logger.setLevel(self.level)
        return self

    def close(self) -> None:
        if self._logger is not None:
            self._logger.removeHandler(self)
            self._logger = None
        super().close()

    def __enter__(self) -> "OperatorLog":
        return self.install()

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def render(self) -> str:
        return "\n".join(self._lines)
