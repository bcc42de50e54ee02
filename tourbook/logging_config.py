"""
Logging setup.

Configured once from the application lifespan. Every module takes its own
logger with logging.getLogger(__name__), so records carry the dotted module
path (e.g. "tourbook.services.auth_service").

Passwords, password hashes, session tokens and reset tokens are never passed
to a logger.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the root logger at the given level."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # uvicorn installs its own handlers; keep our package at the same level
    logging.getLogger("tourbook").setLevel(level.upper())
