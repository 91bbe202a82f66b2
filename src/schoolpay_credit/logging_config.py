import logging
from pathlib import Path
from typing import Optional


PACKAGE_LOGGER = "schoolpay_credit"


def configure_logging(level: str = "INFO", file_path: Optional[str] = None) -> None:
    """
    Route log records to stderr (and optionally a file).

    ``level`` applies to the ``schoolpay_credit`` loggers only; everything else stays at WARNING,
    so DEBUG runs show the allocation trace without third-party chatter.
    """
    name = (level or "INFO").strip().upper()
    numeric_level = logging.getLevelName(name)
    unknown = not isinstance(numeric_level, int)
    if unknown:
        numeric_level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=True,  # the CLI reconfigures once config is loaded
    )
    logging.getLogger(PACKAGE_LOGGER).setLevel(numeric_level)

    if unknown:
        logging.getLogger(PACKAGE_LOGGER).warning("Unknown log level %r; using INFO", level)
