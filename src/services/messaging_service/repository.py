from typing import List, Optional

from src.core.access import SharedTrip
from src.infra.database import DatabaseManager
from src.shared.models.enums import MessageType, TripStatus, UserRole
from src.shared.models.message_dto import MessageDTO, RecipientDTO
from src.shared.models.user_dto import UserSummary

MESSAGE_COLUMNS = "m.id, m.sender_id, m.receiver_id, m.content, m.type, m.timestamp"


class MessageRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get_user_summary(self, user_id: int) -> Optional[UserSummary]:
        record = await self.db.fetchrow("SELECT id, name, email, role FROM users WHERE id = $1", user_id)
        return UserSummary(**dict(record)) if record else None

    async def list_shared_trips(self, driver_user_id: int, parent_user_id: int) -> List[SharedTrip]:
        """Trips driven by the driver that carry at least one of the parent's children."""
        query = """
            SELECT DISTINCT t.id, t.status, t.trip_date
            FROM trips t
            JOIN drivers d ON d.id = t.driver_id
            JOIN trip_attendance_list tal ON tal.trip_id = t.id
            JOIN students s ON s.id = tal.student_id
            JOIN parents p ON p.id = s.parent_id
            WHERE d.user_id = $1 AND p.user_id = $2
        """
        records = await self.db.fetch(query, driver_user_id, parent_user_id)
        return [
            SharedTrip(trip_id=r["id"], status=TripStatus(r["status"]), trip_date=r["trip_date"])
            for r in records
        ]

    async def create_message(
        self,
        sender_id: int,
        receiver_id: int,
        content: str,
        message_type: MessageType,
    ) -> MessageDTO:
        query = f"""
            INSERT INTO messages AS m (sender_id, receiver_id, content, type, timestamp)
            VALUES ($1, $2, $3, $4, NOW())
            RETURNING {MESSAGE_COLUMNS}
        """
        record = await self.db.fetchrow(query, sender_id, receiver_id, content, message_type.value)
        return MessageDTO(**dict(record))

    async def list_messages_with_counterparts(self, user_id: int) -> List[dict]:
        """Every message touching the user, newest first, with the other party's name and role."""
        query = f"""
            SELECT {MESSAGE_COLUMNS},
                   u.id AS counterpart_id, u.name AS counterpart_name, u.role AS counterpart_role
            FROM messages m
            JOIN users u ON u.id = CASE WHEN m.sender_id = $1 THEN m.receiver_id ELSE m.sender_id END
            WHERE m.sender_id = $1 OR m.receiver_id = $1
            ORDER BY m.timestamp DESC, m.id DESC
        """
        return [dict(r) for r in await self.db.fetch(query, user_id)]

    async def list_thread(self, user_id: int, other_user_id: int) -> List[MessageDTO]:
        query = f"""
            SELECT {MESSAGE_COLUMNS}
            FROM messages m
            WHERE (m.sender_id = $1 AND m.receiver_id = $2)
               OR (m.sender_id = $2 AND m.receiver_id = $1)
            ORDER BY m.timestamp ASC, m.id ASC
        """
        records = await self.db.fetch(query, user_id, other_user_id)
        return [MessageDTO(**dict(r)) for r in records]

    # ------------------------------------------------------------------
    # Recipients
    # ------------------------------------------------------------------

    async def list_users_except(self, user_id: int) -> List[RecipientDTO]:
        records = await self.db.fetch(
            "SELECT id, name, email, role FROM users WHERE id <> $1 ORDER BY name", user_id
        )
        return [RecipientDTO(**dict(r)) for r in records]

    async def list_admins(self) -> List[RecipientDTO]:
        records = await self.db.fetch(
            "SELECT id, name, email, role FROM users WHERE role = $1 ORDER BY name", UserRole.ADMIN.value
        )
        return [RecipientDTO(**dict(r)) for r in records]

    async def list_parents_for_driver(self, driver_user_id: int) -> List[RecipientDTO]:
        query = """
            SELECT DISTINCT u.id, u.name, u.email, u.role
            FROM trips t
            JOIN drivers d ON d.id = t.driver_id
            JOIN trip_attendance_list tal ON tal.trip_id = t.id
            JOIN students s ON s.id = tal.student_id
            JOIN parents p ON p.id = s.parent_id
            JOIN users u ON u.id = p.user_id
            WHERE d.user_id = $1
            ORDER BY u.name
        """
        return [RecipientDTO(**dict(r)) for r in await self.db.fetch(query, driver_user_id)]

    async def list_drivers_for_parent(self, parent_user_id: int) -> List[RecipientDTO]:
        query = """
            SELECT DISTINCT u.id, u.name, u.email, u.role
            FROM trips t
            JOIN trip_attendance_list tal ON tal.trip_id = t.id
            JOIN students s ON s.id = tal.student_id
            JOIN parents p ON p.id = s.parent_id
            JOIN drivers d ON d.id = t.driver_id
            JOIN users u ON u.id = d.user_id
            WHERE p.user_id = $1
            ORDER BY u.name
        """
        return [RecipientDTO(**dict(r)) for r in await self.db.fetch(query, parent_user_id)]
