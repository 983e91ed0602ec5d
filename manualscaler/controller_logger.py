import logging

from manualscaler.config import DEFAULT_LOG_FORMAT


class ControllerLogger:
    """Configures root logging once and hands out a named logger."""

    def __init__(
        self,
        name: str,
        level: int | str = logging.INFO,
        log_file: str | None = None,
        fmt: str = DEFAULT_LOG_FORMAT,
    ):
        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if log_file:
            handlers.append(logging.FileHandler(log_file))
        for handler in handlers:
            handler.setLevel(level)
        logging.basicConfig(level=level, format=fmt, handlers=handlers)
        self.logger = logging.getLogger(name)
