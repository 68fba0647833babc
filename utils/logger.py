# utils/logger.py
"""
Logging setup shared by every component of the peer mesh tool.

Importing this module configures the root logger once: coloured INFO output
on stdout, a full DEBUG trail in eth_peer_mesh.log and errors only in
errors.log, both rotating, under the directory named by settings.log_dir.
"""

import copy
import logging
import logging.handlers
import os
import sys

from config.settings import settings


class ColoredFormatter(logging.Formatter):
    """Prefixes the level name with an ANSI colour for terminals."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        # Records are shared with the file handlers, colour a copy only
        record = copy.copy(record)
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record.levelname = f"{log_color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


class LoggerManager:
    """
    Owns the root logger handlers.

    Components never build handlers themselves, they ask for a named logger
    with get_logger and inherit the handlers installed here.
    """

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = log_dir
        os.makedirs(self.log_dir, exist_ok=True)
        self._install_handlers()

    def _rotating_handler(self, filename: str, max_bytes: int, backups: int, level: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(self.log_dir, filename),
            maxBytes=max_bytes,
            backupCount=backups,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        return handler

    def _install_handlers(self) -> None:
        """Replace whatever the root logger had with console and file output."""
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(console_handler)

        root_logger.addHandler(self._rotating_handler('eth_peer_mesh.log', 10*1024*1024, 5, logging.DEBUG))
        root_logger.addHandler(self._rotating_handler('errors.log', 5*1024*1024, 3, logging.ERROR))

        # web3 and urllib3 are chatty at DEBUG
        logging.getLogger("web3").setLevel(logging.INFO)
        logging.getLogger("urllib3").setLevel(logging.INFO)

    def get_logger(self, name: str) -> logging.Logger:
        """Named logger for one component, e.g. "PeerManager"."""
        return logging.getLogger(name)


# Built after settings so LOG_DIR from .env is already loaded
logger_manager = LoggerManager(settings.log_dir)
