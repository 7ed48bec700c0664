# energy_engine/readings.py
"""
Accepted readings and the per-class table layout.

A reading is immutable once built. Its timestamp is always a timezone-aware
UTC instant so it compares and stores the same way on every backend.
"""
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Union

from .models import MeterHistory, MeterCurrent, VehicleHistory, VehicleCurrent


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    # Naive datetimes are taken as UTC (SQLite hands them back that way)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class DeviceClass(str, Enum):
    METER = "meter"
    VEHICLE = "vehicle"


@dataclass(frozen=True)
class DeviceTables:
    history: type
    current: type
    id_column: str
    metric_fields: tuple


TABLES = {
    DeviceClass.METER: DeviceTables(
        history=MeterHistory,
        current=MeterCurrent,
        id_column="meter_id",
        metric_fields=("kwh_consumed_ac", "voltage"),
    ),
    DeviceClass.VEHICLE: DeviceTables(
        history=VehicleHistory,
        current=VehicleCurrent,
        id_column="vehicle_id",
        metric_fields=("soc", "kwh_delivered_dc", "battery_temp"),
    ),
}


class _ReadingMixin:
    device_class: ClassVar[DeviceClass]

    def __post_init__(self):
        object.__setattr__(self, "timestamp", to_utc(self.timestamp))

    @property
    def device_id(self) -> str:
        return getattr(self, TABLES[self.device_class].id_column)

    def metrics(self) -> dict:
        return {name: getattr(self, name) for name in TABLES[self.device_class].metric_fields}

    def as_row(self) -> dict:
        """Column values for both the history and the current-state tables."""
        row = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "timestamp"}
        row["ts"] = self.timestamp
        return row


@dataclass(frozen=True)
class MeterReading(_ReadingMixin):
    meter_id: str
    kwh_consumed_ac: float
    voltage: float
    timestamp: datetime

    device_class: ClassVar[DeviceClass] = DeviceClass.METER


@dataclass(frozen=True)
class VehicleReading(_ReadingMixin):
    vehicle_id: str
    soc: float
    kwh_delivered_dc: float
    battery_temp: float
    timestamp: datetime

    device_class: ClassVar[DeviceClass] = DeviceClass.VEHICLE


Reading = Union[MeterReading, VehicleReading]

_READING_TYPES = {
    DeviceClass.METER: MeterReading,
    DeviceClass.VEHICLE: VehicleReading,
}


def reading_from_row(device_class: DeviceClass, row) -> Reading:
    """Rebuild a reading from a history or current-state ORM row."""
    tables = TABLES[device_class]
    values = {name: getattr(row, name) for name in (tables.id_column,) + tables.metric_fields}
    return _READING_TYPES[device_class](timestamp=row.ts, **values)
