"""Logging setup for command-line entry points.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, once, by the CLI.
"""
from __future__ import annotations
import logging, os
from typing import Optional
from config.settings import LOG_LEVEL, LOG_FILE

FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
	logger = logging.getLogger('lockbox')
	logger.setLevel((level or LOG_LEVEL).upper())
	# Re-running replaces our handlers so the stream follows the current sys.stderr.
	for h in list(logger.handlers):
		logger.removeHandler(h)
		h.close()
	handler = logging.StreamHandler()
	handler.setFormatter(logging.Formatter(FORMAT))
	logger.addHandler(handler)
	log_file = log_file or LOG_FILE
	if log_file:
		os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
		fh = logging.FileHandler(log_file)
		fh.setFormatter(logging.Formatter(FORMAT))
		logger.addHandler(fh)
	return logger
