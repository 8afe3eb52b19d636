"""
Logging - Console and daily-file log handlers for LedgerLock.

Provides:
- configure_logging: root logger setup driven by AppSettings
- Daily files under <data dir>/logs named ledgerlock-YYYY-MM-DD.log,
  switched at midnight by DailyFileHandler
- Tail reading across the newest files and retention cleanup

Secrets never reach these handlers: intents and buffers log through
describe() and SecretStr's redacted repr only.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union
import logging
import os

from utils import get_logs_dir

LOG_PREFIX = "ledgerlock-"
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
DAY_FORMAT = '%Y-%m-%d'

# Today's file and yesterday's are enough to cover a session spanning midnight
TAIL_DAYS = 2

logger = logging.getLogger(__name__)


def configure_logging(level: Union[int, str] = logging.INFO, retention_days: int = 0,
                      data_dir: Optional[Path] = None) -> None:
    """
    Install LedgerLock's handlers on the root logger.

    A second call is a no-op, so tests and embedders that configured
    logging first keep their handlers.

    Args:
        level: level name from settings ("INFO") or a logging constant
        retention_days: days of files to keep; 0 logs to the console only
        data_dir: data directory override (default: app dir)
    """
    root = logging.getLogger()
    if root.handlers:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root.setLevel(level)

    handlers: list[logging.Handler] = [
        _handler(logging.StreamHandler(), level, '%H:%M:%S'),
    ]
    if retention_days > 0:
        path = get_log_file_path(data_dir=data_dir)
        try:
            handlers.append(_handler(DailyFileHandler(data_dir, retention_days), level, FILE_DATE_FORMAT))
        except OSError as e:
            root.addHandler(handlers[0])
            logger.warning(f"Could not open {path.name}, logging to console only: {e}")
            return

    for handler in handlers:
        root.addHandler(handler)
    if retention_days > 0:
        removed = cleanup_old_logs(retention_days, data_dir=data_dir)
        if removed:
            logger.debug(f"Removed {removed} expired log file(s)")


def _handler(handler: logging.Handler, level: int, datefmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=datefmt))
    return handler


class DailyFileHandler(logging.FileHandler):
    """
    FileHandler writing to the log file of the day each record was created.

    The stream is reopened on the first record of a new day, and files past
    the retention window are removed at that point.
    """

    def __init__(self, data_dir: Optional[Path] = None, retention_days: int = 0):
        self.data_dir = data_dir
        self.retention_days = retention_days
        now = datetime.now()
        self.day = now.strftime(DAY_FORMAT)
        super().__init__(get_log_file_path(now, data_dir=data_dir), encoding='utf-8')

    def emit(self, record: logging.LogRecord) -> None:
        created = datetime.fromtimestamp(record.created)
        if created.strftime(DAY_FORMAT) != self.day:
            self._switch_day(created)
        super().emit(record)

    def _switch_day(self, when: datetime) -> None:
        # Runs under the handler lock taken by Handler.handle()
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        self.baseFilename = os.path.abspath(get_log_file_path(when, data_dir=self.data_dir))
        self.day = when.strftime(DAY_FORMAT)
        if self.retention_days > 0:
            cleanup_old_logs(self.retention_days, data_dir=self.data_dir)


def get_log_file_path(date: Optional[datetime] = None, data_dir: Optional[Path] = None) -> Path:
    """Daily log file for date (default: today)."""
    day = (date or datetime.now()).strftime(DAY_FORMAT)
    return get_logs_dir(data_dir) / f"{LOG_PREFIX}{day}.log"


def _file_date(path: Path) -> Optional[datetime]:
    """Date encoded in a log file name, or None for foreign files."""
    try:
        return datetime.strptime(path.stem[len(LOG_PREFIX):], DAY_FORMAT)
    except ValueError:
        return None


def load_recent_logs(max_lines: int = 500, data_dir: Optional[Path] = None) -> list[str]:
    """
    Return up to max_lines of the newest log output, oldest line first.

    Walks back from today's file through the previous TAIL_DAYS files and
    stops once enough lines are collected.
    """
    if max_lines <= 0:
        return []

    collected: list[str] = []
    now = datetime.now()
    for offset in range(TAIL_DAYS):
        path = get_log_file_path(now - timedelta(days=offset), data_dir=data_dir)
        if not path.exists():
            continue
        collected = _tail(path, max_lines - len(collected)) + collected
        if len(collected) >= max_lines:
            break
    return collected


def _tail(path: Path, n: int) -> list[str]:
    try:
        text = path.read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        logger.warning(f"Could not read {path.name}: {e}")
        return []
    return text.splitlines()[-n:]


def cleanup_old_logs(retention_days: int, data_dir: Optional[Path] = None) -> int:
    """
    Delete dated log files older than retention_days.

    Files in the logs directory whose names carry no date are left alone.
    Returns the number of files removed.
    """
    if retention_days < 0:
        return 0

    cutoff = datetime.now() - timedelta(days=retention_days)
    removed = 0
    for path in get_logs_dir(data_dir).glob(f"{LOG_PREFIX}*.log"):
        day = _file_date(path)
        if day is None or day >= cutoff:
            continue
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Could not delete {path.name}: {e}")
        else:
            removed += 1
    return removed
