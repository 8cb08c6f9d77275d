"""
Structured JSON-lines logger for webview_query.

Every record is one JSON object per line so a run over many sessions can be
grepped or replayed later. Records carry the run id plus whatever the caller
puts in ``data``; the session processor always tags its records with the
session label.

Usage:
    from webview_query.logger import get_logger

    logger = get_logger()
    logger.info("SessionProcessor", "processing", {"session": "alice"})

    with logger.span("SessionProcessor", "web_view", {"session": "alice"}):
        result = await client.request_web_view(...)
"""

import json
import sys
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, TextIO, Tuple


RED = "\x1b[31m"
RESET = "\x1b[0m"


class LogLevel(IntEnum):
    """Log level enumeration."""
    TRACE = 5
    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40

    @classmethod
    def from_string(cls, level_str: str) -> "LogLevel":
        """Parse string to LogLevel, defaulting to INFO."""
        mapping = {
            "TRACE": cls.TRACE,
            "DEBUG": cls.DEBUG,
            "INFO": cls.INFO,
            "WARN": cls.WARN,
            "WARNING": cls.WARN,
            "ERROR": cls.ERROR,
        }
        return mapping.get(str(level_str).upper(), cls.INFO)


class LogSpan:
    """Context manager that logs the duration of an operation."""

    def __init__(
        self,
        logger: "StructuredLogger",
        level: LogLevel,
        component: str,
        event: str,
        data: Optional[Dict[str, Any]] = None,
    ):
        self.logger = logger
        self.level = level
        self.component = component
        self.event = event
        self.data = dict(data or {})
        self.start_time: Optional[float] = None

    def __enter__(self) -> "LogSpan":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.data["error"] = str(exc_val)
            self.data["error_type"] = exc_type.__name__
            self.logger._log(
                LogLevel.ERROR,
                self.component,
                f"{self.event}_error",
                self.data,
                duration_ms=duration_ms,
            )
        else:
            self.logger._log(
                self.level,
                self.component,
                f"{self.event}_complete",
                self.data,
                duration_ms=duration_ms,
            )

        return False

    def set_data(self, data: Dict[str, Any]) -> None:
        """Update span data before completion."""
        self.data.update(data)


class StructuredLogger:
    """Thread-safe structured JSON-lines logger."""

    # Keys whose values are auth material; redacted unless sensitive logging is on
    SENSITIVE_KEYS = {"api_hash", "hash", "query", "query_data", "token", "url", "auth_url"}

    def __init__(self):
        self._lock = threading.RLock()
        self._run_id: str = self._generate_run_id()
        self._level: LogLevel = LogLevel.INFO
        self._enabled: bool = True
        self._log_sensitive_data: bool = False
        self._log_directory: Optional[Path] = None
        self._file_handle: Optional[TextIO] = None
        self._current_file_path: Optional[Path] = None
        self._max_file_size: int = 10 * 1024 * 1024
        self._max_files: int = 10
        self._write_count: int = 0
        self._console_output: bool = True

    def _generate_run_id(self) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_part = format(int(time.time() * 1000000) % 65536, "04X")
        return f"{timestamp}_{random_part}"

    @property
    def level(self) -> LogLevel:
        return self._level

    @property
    def enabled(self) -> bool:
        return self._enabled

    def configure(
        self,
        enabled: bool = True,
        level: str = "INFO",
        log_directory: Optional[str] = None,
        log_sensitive_data: bool = False,
        console_output: bool = True,
        max_file_size: int = 10485760,
        max_files: int = 10,
        run_id: Optional[str] = None,
    ) -> None:
        """Configure logger from settings."""
        with self._lock:
            self._enabled = enabled
            self._level = LogLevel.from_string(level)
            self._log_sensitive_data = log_sensitive_data
            self._console_output = console_output
            self._max_file_size = max_file_size
            self._max_files = max_files
            self._log_directory = Path(log_directory) if log_directory else None
            if run_id:
                self._run_id = run_id
            self._close_file()

    def error(self, component: str, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.ERROR, component, event, data)

    def warn(self, component: str, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.WARN, component, event, data)

    def info(self, component: str, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.INFO, component, event, data)

    def debug(self, component: str, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.DEBUG, component, event, data)

    def trace(self, component: str, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.TRACE, component, event, data)

    @contextmanager
    def span(
        self,
        component: str,
        event: str,
        data: Optional[Dict[str, Any]] = None,
        level: LogLevel = LogLevel.INFO,
    ) -> Generator[LogSpan, None, None]:
        """Create a timed span for an operation.

        Emits ``<event>_complete`` on success and ``<event>_error`` when the
        block raises. The exception is never suppressed.
        """
        span_obj = LogSpan(self, level, component, event, data)
        with span_obj:
            yield span_obj

    def close(self) -> None:
        with self._lock:
            self._close_file()

    def _log(
        self,
        level: LogLevel,
        component: str,
        event: str,
        data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ) -> None:
        """Core logging method. Never raises into the caller."""
        if not self._enabled or level < self._level:
            return

        try:
            entry = self._create_entry(level, component, event, data, duration_ms)
            json_str = json.dumps(entry, default=str)

            if self._console_output:
                print(f"[{level.name}] {component}.{event}: {json_str}", file=sys.stderr)

            self._write_to_file(json_str)
        except Exception as e:
            if self._console_output:
                print(f"Logger error: {e}", file=sys.stderr)

    def _create_entry(
        self,
        level: LogLevel,
        component: str,
        event: str,
        data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": level.name,
            "run_id": self._run_id,
            "component": component,
            "event": event,
        }

        if data:
            if self._log_sensitive_data:
                entry["data"] = self._sanitize_data(data)
            else:
                entry["data"] = self._redact_sensitive(data)

        if duration_ms is not None:
            entry["duration_ms"] = round(duration_ms, 3)

        return entry

    def _sanitize_data(self, data: Any) -> Any:
        """Make data JSON-encodable."""
        if isinstance(data, dict):
            return {k: self._sanitize_data(v) for k, v in data.items()}
        elif isinstance(data, (list, tuple)):
            return [self._sanitize_data(v) for v in data]
        elif isinstance(data, (str, int, float, bool, type(None))):
            return data
        elif isinstance(data, bytes):
            return f"<bytes:{len(data)}>"
        elif isinstance(data, BaseException):
            return {"type": type(data).__name__, "message": str(data)}
        else:
            try:
                return str(data)
            except Exception:
                return f"<{type(data).__name__}>"

    def _redact_sensitive(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for k, v in data.items():
            if k.lower() in self.SENSITIVE_KEYS:
                if isinstance(v, str):
                    result[k] = f"<redacted:{len(v)} chars>"
                else:
                    result[k] = "<redacted>"
            elif isinstance(v, dict):
                result[k] = self._redact_sensitive(v)
            else:
                result[k] = self._sanitize_data(v)
        return result

    def _write_to_file(self, json_str: str) -> None:
        with self._lock:
            if self._file_handle is None:
                self._open_file()

            if self._file_handle is None:
                return

            self._file_handle.write(json_str + "\n")
            self._file_handle.flush()

            self._write_count += 1
            if self._write_count % 100 == 0:
                self._check_rotation()

    def _open_file(self) -> None:
        log_path = self._get_log_path()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_path, "a", encoding="utf-8")
            self._current_file_path = log_path
        except OSError as e:
            if self._console_output:
                print(f"Failed to open log file {log_path}: {e}", file=sys.stderr)

    def _close_file(self) -> None:
        if self._file_handle:
            try:
                self._file_handle.close()
            except OSError:
                pass
            self._file_handle = None
            self._current_file_path = None

    def _get_log_path(self) -> Path:
        log_dir = self._log_directory or Path.cwd() / "logs"
        return log_dir / f"webview_query_{self._run_id}.jsonl"

    def _check_rotation(self) -> None:
        if self._current_file_path and self._current_file_path.exists():
            if self._current_file_path.stat().st_size > self._max_file_size:
                self._rotate_files()

    def _rotated_files(self, current: Path) -> List[Tuple[int, Path]]:
        """Rotated siblings of ``current`` as (index, path), lowest index first."""
        prefix = f"{current.stem}."
        rotated = []
        for path in current.parent.glob(f"{current.stem}.*{current.suffix}"):
            index = path.name[len(prefix):-len(current.suffix)]
            if index.isdigit():
                rotated.append((int(index), path))
        return sorted(rotated)

    def _rotate_files(self) -> None:
        current = self._current_file_path
        self._close_file()
        if current is None:
            return

        rotated = self._rotated_files(current)
        next_index = rotated[-1][0] + 1 if rotated else 1

        # Drop the oldest so at most max_files remain after the rename
        while rotated and len(rotated) >= self._max_files:
            _, oldest = rotated.pop(0)
            try:
                oldest.unlink()
            except OSError:
                break

        try:
            current.rename(current.with_name(f"{current.stem}.{next_index}{current.suffix}"))
        except OSError:
            pass

        self._open_file()


def highlight(message: str, stream: Optional[TextIO] = None) -> None:
    """Print an operator-visible alert in red, bypassing the structured log."""
    print(f"{RED}{message}{RESET}", file=stream or sys.stderr)


_logger_instance: Optional[StructuredLogger] = None
_logger_lock = threading.Lock()


def get_logger() -> StructuredLogger:
    """Get the global logger instance."""
    global _logger_instance
    with _logger_lock:
        if _logger_instance is None:
            _logger_instance = StructuredLogger()
        return _logger_instance


def configure_logger(
    enabled: bool = True,
    level: str = "INFO",
    log_directory: Optional[str] = None,
    log_sensitive_data: bool = False,
    console_output: bool = True,
    max_file_size: int = 10485760,
    max_files: int = 10,
    run_id: Optional[str] = None,
) -> None:
    """Configure the global logger."""
    get_logger().configure(
        enabled=enabled,
        level=level,
        log_directory=log_directory,
        log_sensitive_data=log_sensitive_data,
        console_output=console_output,
        max_file_size=max_file_size,
        max_files=max_files,
        run_id=run_id,
    )
