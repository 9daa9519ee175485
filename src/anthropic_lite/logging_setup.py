from __future__ import annotations
import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "warning") -> None:
    """Entry points only; library modules just use logging.getLogger(__name__)."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logging.getLogger().level))
