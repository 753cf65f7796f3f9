"""Contains logging configuration data."""

import contextlib
import io
import sys
import threading
from queue import Queue
from typing import Generator

from loguru import logger

# Logger printing formats
DEFAULT_FORMAT = "<level>{level}</level>: {message}"
DEBUG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <7}</level> | "
    "<cyan>{name}:{line}</cyan> | "
    "{message}"
)


def setup_logging(
    filename=None,
    level="INFO",
) -> None:
    """Configures logging to file and console.

    Parameters
    ----------
    filename : str | None
        log filename
    level : str, optional
        change default level of logging.
    """
    logger.remove()
    logger.enable("infraseries")
    logger.add(sys.stderr, level=level, format=DEFAULT_FORMAT)
    if filename:
        logger.add(filename, level=level, format=DEBUG_FORMAT)


class _LogWriter(io.TextIOBase):
    """File-like object that forwards complete lines to a bounded queue."""

    def __init__(self, queue: "Queue[str | None]") -> None:
        super().__init__()
        self._queue = queue
        self._buffer = ""

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._queue.put(line)
        return len(text)

    def flush(self) -> None:
        if self._buffer:
            self._queue.put(self._buffer)
            self._buffer = ""


def _drain(queue: "Queue[str | None]", level: str) -> None:
    while True:
        line = queue.get()
        if line is None:
            break
        line = line.strip()
        if line:
            logger.log(level, line)


@contextlib.contextmanager
def redirect_stdout_to_log(
    level: str = "INFO", maxsize: int = 1000
) -> Generator[None, None, None]:
    """Redirect all data written to stdout inside the block to log events.

    A worker thread drains the captured lines so that writers block only when more than
    maxsize lines are pending.

    Examples
    --------
    >>> with redirect_stdout_to_log():
    ...     print("converted 10 time series")
    INFO: converted 10 time series
    """
    queue: Queue[str | None] = Queue(maxsize=maxsize)
    writer = _LogWriter(queue)
    worker = threading.Thread(target=_drain, args=(queue, level), daemon=True)
    worker.start()
    try:
        with contextlib.redirect_stdout(writer):
            yield
    finally:
        writer.flush()
        queue.put(None)
        worker.join()
