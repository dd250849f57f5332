"""Logging setup shared by the server entrypoint and the app factory"""
import logging
import sys
from pathlib import Path
from typing import List

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def configure_logging(settings, force: bool = False):
    """
    Install stdout (and optionally file) handlers on the root logger

    Safe to call more than once; only the first call (or force=True) wins.
    """
    global _configured
    if _configured and not force:
        return

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode='a', encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
    _configured = True
