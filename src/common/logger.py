# src/common/logger.py
"""
Модуль структурированного логирования.
Поддерживает JSON и цветной текстовый формат, ротацию файлов по размеру
и отдельный файл для ошибок.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.common.constants import LOGGER_NAME, TypeMsg


# Общие файловые хендлеры (один на процесс для всех логгеров)
_GLOBAL_FILE_HANDLER: logging.Handler | None = None
_GLOBAL_ERROR_HANDLER: logging.Handler | None = None

_LOGGING_INITIALIZED: bool = False


# =============================================================================
# ФОРМАТТЕРЫ И ХЕНДЛЕРЫ
# =============================================================================

class JsonFormatter(logging.Formatter):
    """Форматтер для JSON логов."""

    def format(self, record: logging.LogRecord) -> str:
        """Форматирует запись лога в JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Цветной форматтер для консоли (разработка)."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def format(self, record: logging.LogRecord) -> str:
        """Форматирует запись лога с цветом и местом вызова."""
        color = self.COLORS.get(record.levelname, self.GRAY)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        caller_info = ""
        extra_data = getattr(record, "extra_data", None)
        if extra_data and extra_data.get("caller_function"):
            caller_info = (
                f" {self.GRAY}[{extra_data.get('caller_module')}."
                f"{extra_data.get('caller_function')}() "
                f"{extra_data.get('caller_file')}:{extra_data.get('caller_line')}]{self.RESET}"
            )

        message = f"{timestamp} {color}[{record.levelname}]{self.RESET}{caller_info} {record.getMessage()}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


class DateBasedRotatingFileHandler(RotatingFileHandler):
    """
    Хендлер с ротацией по размеру.
    Пишет в фиксированный файл (например, school_bus.log), при превышении
    размера переименовывает его в архив с датой и временем.
    """

    def __init__(self, log_dir: str, max_bytes: int, logger_name: str = "app", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger_name = logger_name

        super().__init__(
            filename=str(self.log_dir / f"{logger_name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        """Ротация только при превышении размера файла."""
        if self.maxBytes <= 0:
            return False
        if self.stream is None:
            self.stream = self._open()
        self.stream.seek(0, 2)
        return self.stream.tell() >= self.maxBytes

    def doRollover(self) -> None:
        """Переименовывает текущий файл в архивный и открывает новый."""
        if self.stream:
            self.stream.close()
            self.stream = None

        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        archive_filename = self.log_dir / f"{self.logger_name}_{timestamp}.log"

        if os.path.exists(self.baseFilename):
            try:
                os.rename(self.baseFilename, archive_filename)
            except OSError:
                # Файл занят другим процессом: продолжаем писать в новый
                pass

        self.stream = self._open()


# =============================================================================
# ПАРАМЕТРЫ ЛОГИРОВАНИЯ
# =============================================================================

@dataclass
class _LogOptions:
    level: str = "DEBUG"
    fmt: str = "colored"
    to_file: bool = False
    file_path: str = "logs/app.log"
    max_bytes: int = 10485760


def _read_options() -> _LogOptions:
    """Читает параметры из настроек; в тестах настройки могут быть замоканы."""
    try:
        from src.config import settings
        section = settings.logging
    except Exception:
        return _LogOptions()

    options = _LogOptions()
    if isinstance(section.LOG_LEVEL, str):
        options.level = section.LOG_LEVEL
    if isinstance(section.LOG_FORMAT, str):
        options.fmt = section.LOG_FORMAT
    if isinstance(section.LOG_TO_FILE, bool):
        options.to_file = section.LOG_TO_FILE
    if isinstance(section.LOG_FILE_PATH, str):
        options.file_path = section.LOG_FILE_PATH
    if isinstance(section.LOG_MAX_BYTES, int):
        options.max_bytes = section.LOG_MAX_BYTES
    return options


def _make_formatter(fmt: str) -> logging.Formatter:
    return JsonFormatter() if fmt == "json" else ColoredFormatter()


def _shared_file_handlers(options: _LogOptions) -> list[logging.Handler]:
    """Создаёт (однократно) общий файловый хендлер и хендлер ошибок."""
    global _GLOBAL_FILE_HANDLER, _GLOBAL_ERROR_HANDLER

    log_path = Path(options.file_path)
    log_name = log_path.stem
    service_name = os.getenv("SERVICE_NAME")
    if service_name:
        log_name = f"{log_name}_{service_name}"

    if _GLOBAL_FILE_HANDLER is None:
        _GLOBAL_FILE_HANDLER = DateBasedRotatingFileHandler(
            log_dir=str(log_path.parent),
            max_bytes=options.max_bytes,
            logger_name=log_name,
        )
        _GLOBAL_FILE_HANDLER.setFormatter(_make_formatter(options.fmt))

    if _GLOBAL_ERROR_HANDLER is None:
        _GLOBAL_ERROR_HANDLER = DateBasedRotatingFileHandler(
            log_dir=str(log_path.parent),
            max_bytes=options.max_bytes,
            logger_name="error",
        )
        _GLOBAL_ERROR_HANDLER.setLevel(logging.ERROR)
        _GLOBAL_ERROR_HANDLER.setFormatter(_make_formatter(options.fmt))

    return [_GLOBAL_FILE_HANDLER, _GLOBAL_ERROR_HANDLER]


# =============================================================================
# ЛОГГЕР
# =============================================================================

_loggers: dict[str, logging.Logger] = {}


def setup_logging() -> None:
    """
    Инициализирует систему логирования при старте приложения.
    Идемпотентна.
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(LOGGER_NAME)

    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Возвращает настроенный логгер.
    Кэширует логгеры, чтобы не дублировать хендлеры.
    """
    if name in _loggers:
        return _loggers[name]

    options = _read_options()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, options.level.upper(), logging.DEBUG))

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_make_formatter(options.fmt))
    logger.addHandler(console_handler)

    if options.to_file:
        for handler in _shared_file_handlers(options):
            logger.addHandler(handler)

    logger.propagate = False

    _loggers[name] = logger
    return logger


# =============================================================================
# ВСПОМОГАТЕЛЬНЫЕ ФУНКЦИИ ЛОГИРОВАНИЯ
# =============================================================================

def _get_caller_info() -> dict[str, Any]:
    """
    Информация о коде, вызвавшем функцию логирования.

    Стек: [0] _get_caller_info, [1] log_*, [2] вызывающий код.
    Для log_debug/log_warning добавляется ещё один уровень, поэтому
    пропускаем все кадры из этого модуля.
    """
    frame = inspect.currentframe()
    try:
        caller_frame = frame.f_back if frame else None
        while caller_frame is not None and caller_frame.f_globals.get("__name__") == __name__:
            caller_frame = caller_frame.f_back

        if caller_frame is None:
            return {}

        caller_module = inspect.getmodule(caller_frame)
        return {
            "caller_function": caller_frame.f_code.co_name,
            "caller_module": caller_module.__name__ if caller_module else "unknown",
            "caller_file": Path(caller_frame.f_code.co_filename).name,
            "caller_line": caller_frame.f_lineno,
        }
    finally:
        del frame


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Асинхронная функция логирования.

    Args:
        message: Сообщение для логирования
        type_msg: Уровень сообщения
        logger_name: Имя логгера
        extra: Дополнительные данные (попадают в поле extra JSON-лога)
    """
    logger = get_logger(logger_name)
    record_extra = {"extra_data": {**_get_caller_info(), **(extra or {})}}

    match type_msg:
        case TypeMsg.DEBUG:
            logger.debug(message, extra=record_extra)
        case TypeMsg.WARNING:
            logger.warning(message, extra=record_extra)
        case TypeMsg.ERROR:
            logger.error(message, extra=record_extra)
        case TypeMsg.CRITICAL:
            logger.critical(message, extra=record_extra)
        case _:
            logger.info(message, extra=record_extra)


async def log_debug(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """Логирование DEBUG уровня."""
    await log_info(message, type_msg=TypeMsg.DEBUG, logger_name=logger_name, extra=extra)


async def log_warning(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """Логирование WARNING уровня."""
    await log_info(message, type_msg=TypeMsg.WARNING, logger_name=logger_name, extra=extra)


async def log_error(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """
    Логирование ERROR уровня.

    Args:
        message: Сообщение об ошибке
        logger_name: Имя логгера
        extra: Дополнительные данные
        exc_info: Включать ли трейсбек текущего исключения
    """
    logger = get_logger(logger_name)
    record_extra = {"extra_data": {**_get_caller_info(), **(extra or {})}}
    logger.error(message, extra=record_extra, exc_info=exc_info)
