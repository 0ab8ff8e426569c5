import logging
from contextvars import ContextVar
from pathlib import Path
import sys

from .config import BASE_DIR, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(client_ip)s] %(message)s"

_NOISY_LOGGERS = ("passlib", "multipart")

# set per request by RequestContextMiddleware
client_ip_var: ContextVar[str | None] = ContextVar("client_ip", default=None)


class ClientIPFilter(logging.Filter):
    """Stamps each record with the IP of the request being served, or ``-``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.client_ip = client_ip_var.get() or "-"
        return True


def _log_file_path(raw: str) -> Path:
    log_path = Path(raw)
    if not log_path.is_absolute():
        log_path = BASE_DIR / log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return log_path


def configure_logging() -> None:
    settings = get_settings()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE_PATH:
        handlers.append(logging.FileHandler(_log_file_path(settings.LOG_FILE_PATH), encoding="utf-8"))
    for handler in handlers:
        handler.addFilter(ClientIPFilter())

    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT, handlers=handlers)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
