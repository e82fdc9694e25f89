# mindlog/core/logging.py
"""
Component loggers for mindlog.

Every logger is named ``mindlog.<component>`` and writes one aligned line
per record to stdout::

    [09:00:00] [poller]      [INFO]     2 schedule(s) due at 2025-01-06 09:00:00

Colors follow the same switches as error output: MINDLOG_FORCE_COLOR forces
them on, NO_COLOR turns them off, otherwise they are used only on a TTY.
"""

import logging
import os
import sys
from datetime import datetime
from typing import Optional, TextIO

# Changed by set_default_level() / setup_logging()
_default_level: int = logging.INFO

_COMPONENT_WIDTH = 14  # [repository] + 2
_LEVEL_WIDTH = 11  # [CRITICAL] + 1

_RESET = '\033[0m'
_TIME_COLOR = '\033[94m'
_TEXT_COLOR = '\033[97m'
_LEVEL_COLORS = {
    'DEBUG': '\033[90m',
    'INFO': '\033[92m',
    'WARNING': '\033[93m',
    'ERROR': '\033[91m',
    'CRITICAL': '\033[1;91m',
}


def _stream_supports_color(stream: TextIO) -> bool:
    if os.environ.get('MINDLOG_FORCE_COLOR', '').lower() in ('1', 'true', 'yes'):
        return True
    if os.environ.get('NO_COLOR') is not None:
        return False
    return hasattr(stream, 'isatty') and stream.isatty()


class ColoredFormatter(logging.Formatter):
    """Column-aligned formatter; ANSI colors are optional."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def _paint(self, color: str, text: str) -> str:
        return f'{color}{text}{_RESET}' if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        component = record.name.rsplit('.', 1)[-1]

        formatted = (
            self._paint(_TIME_COLOR, f'[{time_str}]')
            + ' '
            + self._paint(_TEXT_COLOR, f'[{component}]'.ljust(_COMPONENT_WIDTH))
            + self._paint(
                _LEVEL_COLORS.get(record.levelname, _TEXT_COLOR),
                f'[{record.levelname}]'.ljust(_LEVEL_WIDTH),
            )
            + self._paint(_TEXT_COLOR, record.getMessage())
        )

        if record.exc_info:
            formatted += '\n' + self.formatException(record.exc_info)

        return formatted


def set_default_level(level: int) -> None:
    """Set the level applied to loggers created from now on."""
    global _default_level
    _default_level = level


def get_logger(component_name: str, stream: Optional[TextIO] = None) -> logging.Logger:
    """Return the ``mindlog.<component_name>`` logger, configuring it once."""
    logger = logging.getLogger(f'mindlog.{component_name}')

    if not logger.handlers:
        target = stream or sys.stdout
        handler = logging.StreamHandler(target)
        handler.setFormatter(ColoredFormatter(use_colors=_stream_supports_color(target)))
        handler.setLevel(_default_level)
        logger.addHandler(handler)
        logger.setLevel(_default_level)
        # Records are fully handled here; the root logger must not repeat them
        logger.propagate = False

    return logger


def setup_logging(loglevel: str) -> None:
    """Apply a level name (e.g. 'DEBUG') to every existing and future mindlog logger."""
    level = getattr(logging, loglevel.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    set_default_level(level)

    logging.getLogger('mindlog').setLevel(level)
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not name.startswith('mindlog.') or not isinstance(candidate, logging.Logger):
            continue
        candidate.setLevel(level)
        for handler in candidate.handlers:
            handler.setLevel(level)
