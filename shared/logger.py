"""
binload Structured Logger
==========================

Provides :class:`BinloadLogger`, a structured logging facade that emits
both human-friendly Rich console output (on stderr) and machine-parseable
JSON logs to rotating log files.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# ---------------------------------------------------------------------------
# Rich theme consistent with the BinloadConsole colour palette
# ---------------------------------------------------------------------------
_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bold bright_blue",
        "log.level.warning": "bold yellow",
        "log.level.error": "bold red",
        "log.level.critical": "bold white on red",
    }
)

# Serializes handler setup on the process-wide stdlib loggers
_SETUP_LOCK = threading.Lock()


# ========================== JSON Formatter =================================


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single-line JSON object.

    Output fields::

        {
          "timestamp": "...",
          "level": "INFO",
          "logger": "binload.loader",
          "message": "...",
          "tool_name": "loader",
          "operation": "sections",
          "extra": { ... },
          "exc_info": "..."
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr in ("tool_name", "operation"):
            val = getattr(record, attr, None)
            if val is not None:
                entry[attr] = val

        extra = getattr(record, "binload_extra", None)
        if extra is not None:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[1] is not None:
            entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


# ========================== Rich Console Handler ===========================


class _ColorConsoleHandler(RichHandler):
    """Thin wrapper over :class:`rich.logging.RichHandler` applying the
    binload theme.  Always writes to stderr so that stdout carries results only.
    """

    def __init__(self, **kwargs: Any) -> None:
        console = Console(theme=_LOG_THEME, stderr=True)
        super().__init__(
            console=console,
            show_path=False,
            show_time=True,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
            **kwargs,
        )


# ========================== BinloadLogger ==================================


class BinloadLogger:
    """Structured, context-aware logger for binload components.

    Each instance is bound to a *tool_name* (e.g. ``"loader"``) and
    can carry a temporary *operation* context via a context manager.
    The operation is tracked per thread, so one logger may be shared by
    builders running on different threads.

    Usage::

        log = BinloadLogger("loader", log_file="binload.log", json_logs=True)
        log.info("Loading %s", path)
        with log.operation("symbols"):
            log.debug("Reading static symbol table")

    Args:
        tool_name:       Identifying name for the component.
        log_level:       Minimum severity (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file:        Path to the rotating log file. ``None`` disables file logging.
        json_logs:       If ``True`` the file handler emits JSON lines.
        max_bytes:       Maximum log-file size before rotation (default 10 MiB).
        backup_count:    Number of rotated backup files to keep.
        console_output:  If ``True`` attach a colour Rich console handler.
    """

    def __init__(
        self,
        tool_name: str,
        *,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
        console_output: bool = True,
    ) -> None:
        self._tool_name = tool_name
        self._local = threading.local()

        level = getattr(logging, log_level.upper(), logging.INFO)
        self._logger = logging.getLogger(f"binload.{tool_name}")
        with _SETUP_LOCK:
            self._configure(
                level, log_file, json_logs, max_bytes, backup_count, console_output
            )

    def _configure(
        self,
        level: int,
        log_file: str | Path | None,
        json_logs: bool,
        max_bytes: int,
        backup_count: int,
        console_output: bool,
    ) -> None:
        self._logger.setLevel(level)
        self._logger.propagate = False

        # Replace, and close, handlers left by an earlier instance
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()

        if console_output:
            self._logger.addHandler(_ColorConsoleHandler(level=level))

        if log_file:
            file_path = Path(log_file)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                filename=str(file_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            fh.setLevel(level)
            if json_logs:
                fh.setFormatter(_JSONFormatter())
            else:
                fh.setFormatter(
                    logging.Formatter(
                        fmt=(
                            "%(asctime)s | %(levelname)-8s | "
                            "%(name)s | %(message)s"
                        ),
                        datefmt="%Y-%m-%dT%H:%M:%S%z",
                    )
                )
            self._logger.addHandler(fh)

        # Library use without any sink must stay silent
        if not self._logger.handlers:
            self._logger.addHandler(logging.NullHandler())

    @classmethod
    def attach(cls, tool_name: str) -> BinloadLogger:
        """Bind to ``binload.<tool_name>`` as the application left it.

        Handlers, level and propagation are not touched, so library
        components that were not handed a logger log through whatever the
        application configured.  A logger with no handler at all gets a
        :class:`logging.NullHandler`.
        """
        inst = cls.__new__(cls)
        inst._tool_name = tool_name
        inst._local = threading.local()
        inst._logger = logging.getLogger(f"binload.{tool_name}")
        with _SETUP_LOCK:
            if not inst._logger.handlers:
                inst._logger.addHandler(logging.NullHandler())
        return inst

    @classmethod
    def from_config(
        cls,
        tool_name: str,
        settings: Any,
        *,
        verbose: bool = False,
        console_output: bool = True,
    ) -> BinloadLogger:
        """Build a logger from a :class:`shared.config.GlobalConfig`."""
        level = "DEBUG" if verbose or settings.debug else settings.log_level
        return cls(
            tool_name,
            log_level=level,
            log_file=settings.log_file or None,
            json_logs=settings.log_json,
            console_output=console_output,
        )

    # ------------------------------------------------------------------ #
    #  Context management -- operation scope
    # ------------------------------------------------------------------ #

    class _OperationContext:
        """Context manager that temporarily binds an operation name."""

        def __init__(self, parent: BinloadLogger, operation: str) -> None:
            self._parent = parent
            self._operation = operation
            self._prev: str | None = None

        def __enter__(self) -> BinloadLogger:
            self._prev = self._parent.current_operation
            self._parent._local.operation = self._operation
            return self._parent

        def __exit__(self, *exc: Any) -> None:
            self._parent._local.operation = self._prev

    def operation(self, name: str) -> _OperationContext:
        """Return a context manager that sets the *operation* field.

        While active, every log record from this thread includes
        ``operation=<name>``.
        """
        return self._OperationContext(self, name)

    @property
    def current_operation(self) -> str | None:
        """Operation bound on the calling thread, if any."""
        return getattr(self._local, "operation", None)

    # ------------------------------------------------------------------ #
    #  Log methods
    # ------------------------------------------------------------------ #

    def _enrich(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Inject binload context into the log record via *extra*."""
        extra = kwargs.pop("extra", {}) or {}

        extra_data: dict[str, Any] = {}
        standard_keys = {"exc_info", "stack_info", "stacklevel"}
        for key in list(kwargs):
            if key not in standard_keys:
                extra_data[key] = kwargs.pop(key)

        extra["tool_name"] = self._tool_name
        extra["operation"] = self.current_operation
        if extra_data:
            extra["binload_extra"] = extra_data

        kwargs["extra"] = extra
        return kwargs

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a DEBUG-level message."""
        self._logger.debug(msg, *args, **self._enrich(kwargs))

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an INFO-level message."""
        self._logger.info(msg, *args, **self._enrich(kwargs))

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a WARNING-level message."""
        self._logger.warning(msg, *args, **self._enrich(kwargs))

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an ERROR-level message."""
        self._logger.error(msg, *args, **self._enrich(kwargs))

    # ------------------------------------------------------------------ #
    #  Timing helper
    # ------------------------------------------------------------------ #

    class _TimingContext:
        """Context manager for measuring and logging elapsed time."""

        def __init__(self, logger_inst: BinloadLogger, label: str) -> None:
            self._logger = logger_inst
            self._label = label
            self._start: float = 0.0

        def __enter__(self) -> BinloadLogger._TimingContext:
            self._start = time.perf_counter()
            self._logger.debug("Started: %s", self._label)
            return self

        def __exit__(self, *exc: Any) -> None:
            self._logger.debug(
                "Completed: %s (%.3f sec)", self._label, self.elapsed
            )

        @property
        def elapsed(self) -> float:
            """Seconds elapsed since entering the context."""
            return time.perf_counter() - self._start

    def timed(self, label: str) -> _TimingContext:
        """Context manager that logs start / finish and elapsed time."""
        return self._TimingContext(self, label)

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def tool_name(self) -> str:
        """Name of the component this logger is bound to."""
        return self._tool_name

    @property
    def underlying(self) -> logging.Logger:
        """Direct access to the stdlib :class:`logging.Logger`."""
        return self._logger
