# src/shared/errors.py
"""
Таксономия ошибок домена.

Сервисы бросают эти исключения; HTTP-слой превращает их в статус
и тело {"error": message}, realtime-шлюз — в событие error({message}).
"""

from __future__ import annotations


class SchoolBusError(Exception):
    """Базовая ошибка домена."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(SchoolBusError):
    """Нет учётных данных или токен невалиден."""
    status_code = 401
    default_message = "Authentication required"


class Forbidden(SchoolBusError):
    """Пользователь аутентифицирован, но предикат доступа отказал."""
    status_code = 403
    default_message = "Forbidden"


class NotFound(SchoolBusError):
    """Ресурс отсутствует (для рейсов — неотличимо от отсутствия доступа)."""
    status_code = 404
    default_message = "Not found"


class InvalidArgument(SchoolBusError):
    """Некорректные входные данные."""
    status_code = 400
    default_message = "Invalid argument"


class Conflict(SchoolBusError):
    """Дубликат (отзыв, email, номер зачисления) или конфликт состояния."""
    status_code = 409
    default_message = "Conflict"


class InvalidTransition(Conflict):
    """Переход состояния рейса не разрешён из текущего статуса."""
    default_message = "Invalid trip status transition"

    def __init__(self, current_status: str | None = None, target_status: str | None = None) -> None:
        self.current_status = current_status
        self.target_status = target_status
        if current_status and target_status:
            message = f"Cannot change trip status from {current_status} to {target_status}"
        else:
            message = None
        super().__init__(message)


class Internal(SchoolBusError):
    """Непредвиденный сбой хранилища или рантайма (детали не раскрываются клиенту)."""
    status_code = 500
