"""
日志工具 - 统一输出门面

封装 Rich Console，为构建/打包流水线提供带时间戳和阶段标记的统一输出接口。
"""

import atexit
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from rich.console import Console
from rich.markup import escape


class OutputLevel:
    """输出级别常量"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


_LEVEL_ORDER = {
    OutputLevel.DEBUG: 0,
    OutputLevel.INFO: 1,
    OutputLevel.SUCCESS: 1,
    OutputLevel.WARNING: 2,
    OutputLevel.ERROR: 3,
}

_LEVEL_STYLES = {
    OutputLevel.DEBUG: "dim",
    OutputLevel.INFO: "default",
    OutputLevel.SUCCESS: "green",
    OutputLevel.WARNING: "yellow",
    OutputLevel.ERROR: "red bold",
}


class LogStage:
    """流水线阶段标记"""
    INSPECT = "INSPECT"
    CONFIG = "CONFIG"
    PRE_BUILD = "PRE_BUILD"
    BUILD = "BUILD"
    POST_BUILD = "POST_BUILD"
    VALIDATE = "VALIDATE"
    ARCHIVE = "ARCHIVE"
    UPLOAD = "UPLOAD"
    DONE = "DONE"


class OutputFacade:
    """输出门面

    所有输出都带时间戳，可选写入日志文件。错误输出到 stderr。
    """

    def __init__(self, stdout: Any = None, stderr: Any = None):
        self._lock = threading.RLock()
        self._file_handle = None  # type: Optional[Any]
        self._log_level = OutputLevel.INFO
        self._date_format = "%Y-%m-%d %H:%M:%S"
        self._time_format = "%H:%M:%S"
        self._console = Console(
            file=stdout,
            highlight=False,
            log_time=False,
            log_path=False,
        )
        self._error_console = Console(file=stderr, stderr=True, highlight=False)

    def _get_timestamp(self, include_date: bool = False) -> str:
        return datetime.now().strftime(self._date_format if include_date else self._time_format)

    def _should_output(self, level: str) -> bool:
        return _LEVEL_ORDER.get(level, 1) >= _LEVEL_ORDER.get(self._log_level, 1)

    def _format_plain(self, message: str, level: str, stage: Optional[str], include_date: bool = False) -> str:
        timestamp = self._get_timestamp(include_date)
        if stage:
            return f"[{timestamp}] [{level}] [{stage}] {message}"
        return f"[{timestamp}] [{level}] {message}"

    def _format_rich(self, message: str, level: str, stage: Optional[str]) -> str:
        # 构建输出中可能包含方括号，需要转义后再交给 Rich
        text = escape(message)
        prefix = f"[dim]{self._get_timestamp()}[/dim] [bold]{level}[/bold]"
        if stage:
            return f"{prefix} [cyan]{stage}[/cyan] {text}"
        return f"{prefix} {text}"

    def _write_to_file(self, message: str, level: str, stage: Optional[str]) -> None:
        if not self._file_handle:
            return
        try:
            self._file_handle.write(self._format_plain(message, level, stage, include_date=True) + "\n")
            self._file_handle.flush()
        except OSError:
            pass  # 日志文件写入失败不影响流水线

    def emit(self, level: str, message: str, stage: Optional[str] = None) -> None:
        """按级别输出一条消息"""
        if not self._should_output(level):
            return

        with self._lock:
            console = self._error_console if level == OutputLevel.ERROR else self._console
            console.print(self._format_rich(message, level, stage), style=_LEVEL_STYLES.get(level, "default"))
            self._write_to_file(message, level, stage)

    def set_level(self, level: str) -> None:
        """设置输出级别"""
        with self._lock:
            if level in _LEVEL_ORDER:
                self._log_level = level

    def set_log_file(self, file_path: Union[str, Path]) -> None:
        """设置日志文件（追加模式）"""
        with self._lock:
            self._close_file()
            try:
                log_path = Path(file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
                self._file_handle = open(log_path, "a", encoding="utf-8")
            except OSError as e:
                self.emit(OutputLevel.WARNING, f"无法打开日志文件 {file_path}: {e}")

    def _close_file(self) -> None:
        if self._file_handle:
            try:
                self._file_handle.close()
            except OSError:
                pass
            self._file_handle = None

    def close(self) -> None:
        with self._lock:
            self._close_file()


_output_facade: Optional[OutputFacade] = None


def get_output_facade() -> OutputFacade:
    """获取全局输出门面实例"""
    global _output_facade
    if _output_facade is None:
        _output_facade = OutputFacade()
    return _output_facade


def debug(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(OutputLevel.DEBUG, message, stage)


def info(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(OutputLevel.INFO, message, stage)


def success(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(OutputLevel.SUCCESS, message, stage)


def warning(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(OutputLevel.WARNING, message, stage)


def error(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(OutputLevel.ERROR, message, stage)


def set_log_level(level: str) -> None:
    """设置全局日志级别"""
    get_output_facade().set_level(level)


def set_log_file(file_path: Union[str, Path]) -> None:
    """设置全局日志文件"""
    get_output_facade().set_log_file(file_path)


def configure_logging(level: str = OutputLevel.INFO, log_file: Optional[Union[str, Path]] = None) -> None:
    """配置日志系统"""
    set_log_level(level)
    if log_file:
        set_log_file(log_file)


def close_logger() -> None:
    """关闭日志系统"""
    global _output_facade
    if _output_facade:
        _output_facade.close()
        _output_facade = None


atexit.register(close_logger)
