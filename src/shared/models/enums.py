from enum import Enum


class UserRole(str, Enum):
    """Роли пользователей (неизменяемы после регистрации)."""
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"
    PARENT = "PARENT"

    def __str__(self) -> str:
        return self.value


class TripStatus(str, Enum):
    """Статусы рейса."""
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


class TripAction(str, Enum):
    """Действия над рейсом, проверяемые предикатом can_act_on_trip."""
    CREATE = "create"
    START = "start"
    END = "end"
    CANCEL = "cancel"
    MARK_ATTENDANCE = "markAttendance"

    def __str__(self) -> str:
        return self.value


class AttendanceStatus(str, Enum):
    """Отметка посещаемости."""
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"

    def __str__(self) -> str:
        return self.value


class MessageType(str, Enum):
    """Тип сообщения."""
    NOTIFICATION = "notification"
    FEEDBACK = "feedback"
    CHAT = "chat"

    def __str__(self) -> str:
        return self.value


class BusStatus(str, Enum):
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"
    INACTIVE = "INACTIVE"

    def __str__(self) -> str:
        return self.value
