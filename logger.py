import logging
import os
import json
from logging.handlers import RotatingFileHandler
from typing import Optional


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON messages.
    Includes extra fields passed in the log record.
    """
    def format(self, record):
        log_obj = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Merge 'extra' fields if available (e.g. logger.info(..., extra={'data': {...}}))
        if hasattr(record, 'data'):
            log_obj['data'] = record.data

        # Add source info for errors
        if record.levelno >= logging.ERROR:
            log_obj["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "func": record.funcName
            }
            if record.exc_info:
                log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def setup_logger(log_path: Optional[str] = None, verbose: bool = False) -> logging.Logger:
    """
    Sets up the 'relicscan' logger used by the engine and the CLI.
    Logs INFO to console (Human Readable) and DEBUG to a JSON lines file (Machine Readable).
    """
    logger = logging.getLogger("relicscan")
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    # 1. Console Handler (Text - for Humans)
    console_formatter = logging.Formatter('%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s')
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # 2. File Handler (JSON - for Machines)
    if log_path:
        os.makedirs(os.path.dirname(os.path.abspath(log_path)), exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=10*1024*1024, backupCount=5, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    return logger
