"""
Logging setup shared by the CLI and library modules
"""
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
HANDLER_NAME = "livability"


def configure_logging(level: Optional[str] = "INFO") -> None:
    """Attach one stream handler to the package logger at the given level"""
    root = logging.getLogger("livability")
    root.setLevel(getattr(logging, str(level or "INFO").upper(), logging.INFO))
    if not any(handler.get_name() == HANDLER_NAME for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
