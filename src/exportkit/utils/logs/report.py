"""Configures the logging system for the script."""
import os
import sys
import logging
from logging.handlers import RotatingFileHandler

from exportkit.utils.style import ansi

# Toggled by the CLI's --verbose flag
_verbose = False


def settings(script_path):
    """Configures the logging system for the script."""
    script_name = os.path.basename(script_path)
    root = os.path.dirname(os.path.dirname(__file__))
    log_name = script_name.rsplit('.', 1)[0] + '.log'
    log_file = os.path.join(root, 'logs', log_name)
    os.makedirs(os.path.dirname(log_file), exist_ok=True)

    # Create a logger instance
    logger = logging.getLogger(script_name)

    # Prevent adding multiple handlers
    if not logger.handlers:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1024*1024*10,  # 10 MB
            backupCount=10,
            encoding='utf-8'
        )
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s [%(filename)s:%(lineno)d] %(message)s'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

    # Ensure sys.stdout is using UTF-8
    if hasattr(sys.stdout, 'reconfigure'):
        sys.stdout.reconfigure(encoding='utf-8')

    return logger


def set_verbose(enabled):
    """Turn echoing of progress messages to stdout on or off."""
    global _verbose
    _verbose = bool(enabled)


def is_verbose():
    """Return True when progress messages are echoed to stdout."""
    return _verbose


def progress(logger, message, *args):
    """
    Record a progress message.

    The message always goes to the logger at INFO level. It is also printed
    to stdout when verbose output is enabled.
    """
    logger.info(message, *args)
    if _verbose:
        text = message % args if args else message
        print(f"{ansi.grey}{text}{ansi.reset}", flush=True)
