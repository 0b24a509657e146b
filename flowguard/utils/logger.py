# flowguard/utils/logger.py

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def init_logger(level: str = "INFO") -> None:
    """
    Send flowguard, root and Uvicorn logs to stdout with one timestamped format.
    Safe to call more than once; the handler is replaced, not stacked.
    """
    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers = [handler]

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = [handler]
        uv_logger.setLevel(log_level)
        uv_logger.propagate = False

    # httpx/openai log every request at INFO
    for name in ("httpx", "openai"):
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
