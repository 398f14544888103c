"""Logging setup for the timedcache CLI.

Handlers installed here are tagged, so configuring again swaps only them and
leaves handlers owned by an embedding application or by pytest in place.
Anything not passed explicitly is read from the ``logging.*`` configuration keys.
"""

import logging
import sys
from typing import List, Optional, Union

from timedcache.infrastructure.config.settings import get_config

logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = logging.INFO
_OWNED_MARKER = "_timedcache_owned"


def resolve_level(level: Union[int, str, None]) -> int:
    """Maps 'debug', 'DEBUG' or logging.DEBUG to its logging constant (INFO if unknown)."""
    if isinstance(level, int):
        return level
    if not level:
        return DEFAULT_LOG_LEVEL
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else DEFAULT_LOG_LEVEL


def _owned_handlers(root: logging.Logger) -> List[logging.Handler]:
    return [handler for handler in root.handlers if getattr(handler, _OWNED_MARKER, False)]


def _build_handlers(formatter: logging.Formatter, log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
        except OSError as e:
            logger.warning(f"File logging to {log_file} disabled: {e}")
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _OWNED_MARKER, True)
    return handlers


def configure_logging(
    level: Union[int, str, None] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
) -> int:
    """Points the root logger at stdout and, optionally, a log file.

    Args:
        level: Level name or constant. Defaults to ``logging.level``.
        log_format: ``logging.Formatter`` format string. Defaults to ``logging.format``.
        log_file: Extra file to append to. Defaults to ``logging.file``; unset means stdout only.

    Returns:
        The effective root level.
    """
    effective_level = resolve_level(level if level is not None else get_config('logging.level'))
    formatter = logging.Formatter(log_format or get_config('logging.format'))
    target_file = log_file if log_file is not None else get_config('logging.file')

    root = logging.getLogger()
    for handler in _owned_handlers(root):
        root.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(formatter, target_file):
        root.addHandler(handler)
    root.setLevel(effective_level)

    logger.debug(f"Logging configured: level={logging.getLevelName(effective_level)}, file={target_file or '-'}")
    return effective_level
