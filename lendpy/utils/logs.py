"""Root logger setup for simulations and tests"""
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import lendpy


def setup_logging(
    log_filename: str | None = None,
    log_level: int | None = None,
    log_stdout: bool = True,
    max_bytes: int | None = None,
    log_format_string: str | None = None,
) -> None:
    r"""Replace the root logger's handlers with a stdout stream and an optional rotating log file

    Arguments
    ---------
    log_filename : str, optional
        Log file name; a bare name is placed under `.logging/` at the repository root and ".log" is appended
        if missing. No file is written when omitted.
    log_level : int, optional
        Level for every handler. Defaults to lendpy.DEFAULT_LOG_LEVEL.
    log_stdout : bool, optional
        Also stream records to stdout. Defaults to True.
    max_bytes : int, optional
        Size at which the log file rotates. Defaults to lendpy.DEFAULT_LOG_MAXBYTES.
    log_format_string : str, optional
        Record format. Defaults to lendpy.DEFAULT_LOG_FORMATTER.
    """
    level = lendpy.DEFAULT_LOG_LEVEL if log_level is None else log_level
    formatter = logging.Formatter(log_format_string or lendpy.DEFAULT_LOG_FORMATTER, lendpy.DEFAULT_LOG_DATETIME)
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    handlers: list[logging.Handler] = []
    if log_stdout:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_filename is not None:
        handlers.append(
            RotatingFileHandler(
                _log_path(log_filename),
                mode="w",
                maxBytes=lendpy.DEFAULT_LOG_MAXBYTES if max_bytes is None else max_bytes,
            )
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    # the root logger filters before its handlers do
    root_logger.setLevel(level)


def close_logging(delete_logs: bool = True) -> None:
    """Close and detach every root handler, deleting the files they wrote unless told otherwise"""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        filename = getattr(handler, "baseFilename", None)
        handler.close()
        root_logger.removeHandler(handler)
        if delete_logs and filename is not None and os.path.exists(filename):
            os.remove(filename)


def _log_path(log_filename: str) -> str:
    log_dir, log_name = os.path.split(log_filename)
    if not log_name.endswith(".log"):
        log_name += ".log"
    if not log_dir:
        repo_root = os.path.dirname(os.path.dirname(os.path.abspath(lendpy.__file__)))
        log_dir = os.path.join(repo_root, ".logging")
    os.makedirs(log_dir, exist_ok=True)
    return os.path.join(log_dir, log_name)
