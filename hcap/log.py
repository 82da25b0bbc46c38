"""Logging helpers: every module logs under the "hcap." namespace with one shared format."""

import logging

_FORMAT = "%(levelname)s:%(name)s:%(message)s"
_ROOT = "hcap"


def _root_logger() -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
        root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a module (pass __name__). Names already under "hcap." are kept;
    anything else is nested under it so set_log_level() reaches it.
    """
    _root_logger()
    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")


def set_log_level(level: str) -> None:
    """DEBUG / INFO / WARNING / ERROR; unknown names fall back to INFO."""
    _root_logger().setLevel(getattr(logging, level.upper(), logging.INFO))
