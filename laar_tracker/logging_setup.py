import logging
import os
import sys
from datetime import datetime

from .utils.constants import LogConfig


def setup_logging(level: str = "INFO", logs_dir: str = LogConfig.LOGS_DIR):
    """Configure global logging with console and daily file handlers.

    Creates logs/<YYYY-MM-DD>.log and sets a consistent format across modules.
    Call once at startup.
    """
    os.makedirs(logs_dir, exist_ok=True)
    today = datetime.now().strftime(LogConfig.DATE_FORMAT)
    logfile = os.path.join(logs_dir, f"{today}.log")

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LogConfig.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(logfile, encoding="utf-8"),
        ],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("gspread").setLevel(logging.WARNING)
