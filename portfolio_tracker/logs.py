# portfolio_tracker/logs.py
import logging

from portfolio_tracker.settings import Settings, settings as default_settings

LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_configured = False


def configure_logging(cfg: Settings = default_settings) -> None:
    """
    Console + append-only log file, both with a timestamp prefix.
    Safe to call more than once (uvicorn reload, tests).
    """
    global _configured
    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    file_handler = logging.FileHandler(cfg.log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)

    root = logging.getLogger("portfolio_tracker")
    root.setLevel(cfg.log_level.upper())
    root.addHandler(console)
    root.addHandler(file_handler)
    root.propagate = False
    _configured = True
