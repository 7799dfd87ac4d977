import logging

from notaryflow.config import settings

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once per process from settings."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=settings.log_format,
    )
    # SQL echo is controlled by the engine, not by the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
