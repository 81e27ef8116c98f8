"""
Logging utilities for BamCov.
Console logging goes to stderr so stdout carries only the report; an optional
log file receives DEBUG output. Worker processes log through a shared queue.
"""

import logging
import multiprocessing
import sys
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_file: Optional[Path] = None, verbose: bool = False):
    """
    Setup logging to stderr (WARNING, or INFO when verbose) and optionally to a log file (DEBUG).
    Supports multiprocessing via a QueueListener.

    :param log_file: Optional path of a file receiving DEBUG level records.
    :param verbose: Lower the console level to INFO.
    :return: Tuple (queue, listener); the queue can be passed to worker initializers.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    handlers = [console_handler]

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Queue for multiprocessing
    queue = multiprocessing.Manager().Queue(-1)

    listener = QueueListener(queue, *handlers, respect_handler_level=True)
    listener.start()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(queue))

    if log_file is not None:
        root.info(f"Logging initialized. Log file: {log_file}")

    return queue, listener


def worker_configurer(queue):
    """
    Configure a worker process to log to the central queue.
    """
    root = logging.getLogger()
    # forked workers inherit the parent's queue handler
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(queue))
    root.setLevel(logging.DEBUG)
