"""Logging setup for the API process"""
import logging
import os

from infrastructure import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    """Console logging everywhere; error and combined log files in production"""
    global _configured
    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if config.IS_PRODUCTION:
        os.makedirs(config.LOG_DIR, exist_ok=True)

        error_file = logging.FileHandler(os.path.join(config.LOG_DIR, "error.log"))
        error_file.setLevel(logging.ERROR)
        error_file.setFormatter(formatter)
        root.addHandler(error_file)

        combined_file = logging.FileHandler(os.path.join(config.LOG_DIR, "combined.log"))
        combined_file.setFormatter(formatter)
        root.addHandler(combined_file)

    # passlib warns about the bcrypt version check on every start
    logging.getLogger("passlib").setLevel(logging.ERROR)
    _configured = True
