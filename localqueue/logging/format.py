"""Log record formatting for the localqueue server."""
import logging
import re
from functools import lru_cache

MAX_NAME_LEN = 24

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(lq_level)-5s [%(lq_thread)s] %(lq_name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

PACKAGE_PREFIX = "localqueue."

LEVEL_NAMES = {
    logging.CRITICAL: "FATAL",
    logging.WARNING: "WARN",
}

_worker_thread = re.compile(r"^lq-worker_(\d+)$")


@lru_cache(maxsize=256)
def shorten_logger_name(name: str, length: int = MAX_NAME_LEN) -> str:
    """
    Drops the package prefix from localqueue loggers (``localqueue.services.sqs.models`` becomes
    ``services.sqs.models``). Names that are still longer than ``length`` keep as many trailing parts as fit,
    e.g. ``~sqs.models``. The last part is never cut.
    """
    if name.startswith(PACKAGE_PREFIX):
        name = name[len(PACKAGE_PREFIX) :]
    if len(name) <= length:
        return name

    parts = name.split(".")
    kept = [parts.pop()]
    while parts and len(parts[-1]) + sum(len(p) + 1 for p in kept) + 1 <= length:
        kept.insert(0, parts.pop())
    return "~" + ".".join(kept)


def thread_label(thread_name: str) -> str:
    """Short label of the threads localqueue runs: ``worker-<n>`` for request workers, ``server``, ``main``."""
    match = _worker_thread.match(thread_name)
    if match:
        return "worker-%s" % match.group(1)
    if thread_name.startswith("server-"):
        return "server"
    if thread_name == "MainThread":
        return "main"
    return thread_name


class QueueLogFormatter(logging.Formatter):
    """
    Formats records with ``LOG_FORMAT``, filling in the short level name, logger name and thread label.
    """

    def __init__(self, fmt: str = LOG_FORMAT, datefmt: str = LOG_DATE_FORMAT, max_name_len: int = MAX_NAME_LEN):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.max_name_len = max_name_len

    def format(self, record: logging.LogRecord) -> str:
        record.lq_level = LEVEL_NAMES.get(record.levelno, record.levelname)
        record.lq_name = shorten_logger_name(record.name, self.max_name_len)
        record.lq_thread = thread_label(record.threadName or "")
        return super().format(record)
