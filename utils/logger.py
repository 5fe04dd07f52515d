import atexit
import logging
from logging.handlers import RotatingFileHandler, QueueHandler, QueueListener
from queue import Queue
from pathlib import Path
from config.settings import LOG_LEVEL, LOG_FILE

# One queue + one listener per log file. Callers on the timer thread and the
# UI thread only ever touch the queue; the listener owns the file.
_LISTENERS_BY_FILE: dict[str, QueueListener] = {}
_QUEUES_BY_FILE: dict[str, Queue] = {}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _ensure_listener(log_file: str, max_bytes: int, backup_count: int) -> QueueHandler:
    log_file = str(Path(log_file))
    if log_file in _LISTENERS_BY_FILE:
        return QueueHandler(_QUEUES_BY_FILE[log_file])

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    q: Queue = Queue(-1)
    _QUEUES_BY_FILE[log_file] = q

    file_handler = RotatingFileHandler(
        log_file,
        mode="a",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
        delay=True,
    )
    # Release the handle before rotating so the rename works on Windows
    file_handler.closeOnRollover = True
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    listener = QueueListener(q, file_handler, respect_handler_level=True)
    listener.start()
    _LISTENERS_BY_FILE[log_file] = listener

    def _stop_listener():
        try:
            listener.stop()
        except Exception:
            pass

    atexit.register(_stop_listener)

    return QueueHandler(q)


def setup_logger(
    name: str,
    log_file: str = LOG_FILE,
    level=LOG_LEVEL,
    max_bytes: int = 1024 * 1024 * 5,
    backup_count: int = 6,
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    # Console belongs to the rich UI
    logger.propagate = False

    if not logger.handlers:
        qh = _ensure_listener(log_file, max_bytes, backup_count)
        qh.setLevel(level)
        logger.addHandler(qh)

    return logger
