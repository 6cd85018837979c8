from typing import List

from src.infra.database import DatabaseManager
from src.shared.models.admin_dto import BusDTO, DriverDTO, RouteDTO


class AdminRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def list_buses(self) -> List[BusDTO]:
        records = await self.db.fetch(
            "SELECT id, number_plate, bus_name, capacity, status FROM buses ORDER BY number_plate"
        )
        return [BusDTO(**dict(r)) for r in records]

    async def list_routes(self) -> List[RouteDTO]:
        records = await self.db.fetch("SELECT id, route_name, estimated_time FROM routes ORDER BY route_name")
        return [RouteDTO(**dict(r)) for r in records]

    async def list_drivers(self) -> List[DriverDTO]:
        query = """
            SELECT d.id, d.user_id, d.first_name, d.last_name, u.email, u.phone
            FROM drivers d JOIN users u ON u.id = d.user_id
            ORDER BY d.last_name, d.first_name
        """
        return [DriverDTO(**dict(r)) for r in await self.db.fetch(query)]
