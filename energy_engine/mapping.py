# energy_engine/mapping.py
from sqlalchemy import select

from .db import upsert_insert
from .models import VehicleMeterMap


class MappingRegistry:
    """Vehicle -> meter lookup. Read-only on the ingestion and query paths."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def resolve_meter(self, vehicle_id: str) -> str | None:
        """Return the mapped meter id, or None when the vehicle has no mapping."""
        with self._session_factory() as session:
            return session.execute(
                select(VehicleMeterMap.meter_id).where(VehicleMeterMap.vehicle_id == vehicle_id)
            ).scalar_one_or_none()

    def all(self) -> dict:
        with self._session_factory() as session:
            rows = session.execute(select(VehicleMeterMap.vehicle_id, VehicleMeterMap.meter_id)).all()
        return {vehicle_id: meter_id for vehicle_id, meter_id in rows}

    def assign(self, vehicle_id: str, meter_id: str) -> None:
        """Provision (or re-point) a mapping. Operator tooling only."""
        with self._session_factory() as session, session.begin():
            insert = upsert_insert(session.get_bind().dialect.name)
            stmt = insert(VehicleMeterMap).values(vehicle_id=vehicle_id, meter_id=meter_id)
            session.execute(stmt.on_conflict_do_update(
                index_elements=["vehicle_id"],
                set_={"meter_id": stmt.excluded.meter_id},
            ))
