import logging
from typing import Optional, Union

_FORMAT = "%(asctime)s %(levelname)s [%(tracker)s] %(message)s"

LevelLike = Union[int, str]


class TrackerNameFilter(logging.Filter):
    def __init__(self, tracker_name: str):
        super().__init__()
        self.tracker_name = tracker_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.tracker = self.tracker_name
        return True


def resolve_level(level: LevelLike) -> int:
    """Accept a logging constant or a name such as "debug"."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level {level!r}")
    return value


def _tracker_handler(handler: logging.Handler, tracker_name: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler.addFilter(TrackerNameFilter(tracker_name))
    return handler


def setup_logger(tracker_name: str, level: LevelLike = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"cube_tracker.{tracker_name}")
    logger.setLevel(resolve_level(level))

    if not logger.handlers:
        logger.addHandler(_tracker_handler(logging.StreamHandler(), tracker_name))

    return logger


def add_file_handler(
    logger: logging.Logger,
    tracker_name: str,
    log_path: str,
    level: Optional[LevelLike] = None,
) -> logging.FileHandler:
    """
    Mirror the logger into a file.

    A file level below the logger's own lowers the logger, while handlers
    already attached keep the level they emitted at before. This lets the
    file record per-frame DEBUG lines under an INFO console.
    """
    handler = _tracker_handler(logging.FileHandler(log_path, encoding="utf-8"), tracker_name)
    if level is not None:
        level = resolve_level(level)
        handler.setLevel(level)
        if logger.level == logging.NOTSET or level < logger.level:
            previous = logger.getEffectiveLevel()
            for existing in logger.handlers:
                if existing.level == logging.NOTSET:
                    existing.setLevel(previous)
            logger.setLevel(level)
    logger.addHandler(handler)
    return handler
