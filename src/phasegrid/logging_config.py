"""Logging setup for command-line runs and scripts."""

from datetime import datetime
import json
import logging

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def setup_logging(level=logging.INFO, log_file=None, json_format=False):
    """
    Configure the 'phasegrid' logger.

    Replaces any handlers installed by a previous call, so it is safe to
    call more than once.

    Args:
        level: Logging level (int or name such as 'DEBUG')
        log_file: Optional path of an additional log file
        json_format: Emit JSON records instead of plain text

    Returns:
        The configured 'phasegrid' logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger('phasegrid')
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger
