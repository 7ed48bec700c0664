# energy_engine/schemas.py
"""
Input contract for ingestion payloads.

Payloads are a tagged variant: an explicit "type" ("meter" / "vehicle") wins;
without one the variant is detected from which id field is present. Payloads
carrying both ids and no tag, or neither id, are rejected. Every violated
constraint is reported, not only the first.
"""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ReadingRejected
from .readings import DeviceClass, MeterReading, VehicleReading, to_utc

MAX_BATCH_SIZE = 10_000


class _ReadingIn(BaseModel):
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    timestamp: datetime = Field(description="ISO-8601")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_iso(cls, value):
        if not isinstance(value, str) or value.strip().isdigit():
            raise ValueError("timestamp must be an ISO-8601 string")
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(text))
        except OverflowError:
            raise ValueError("timestamp is out of range once converted to UTC") from None
        except ValueError:
            raise ValueError("timestamp must be an ISO-8601 string") from None


class MeterReadingIn(_ReadingIn):
    type: Literal["meter"] | None = None
    meter_id: str = Field(alias="meterId", min_length=1, max_length=100)
    kwh_consumed_ac: float = Field(alias="kwhConsumedAc", ge=0, description="AC energy consumed (kWh)")
    voltage: float = Field(ge=0, description="Voltage (V)")

    def to_reading(self) -> MeterReading:
        return MeterReading(
            meter_id=self.meter_id,
            kwh_consumed_ac=self.kwh_consumed_ac,
            voltage=self.voltage,
            timestamp=self.timestamp,
        )


class VehicleReadingIn(_ReadingIn):
    type: Literal["vehicle"] | None = None
    vehicle_id: str = Field(alias="vehicleId", min_length=1, max_length=100)
    soc: float = Field(ge=0, le=100, description="State of charge (%)")
    kwh_delivered_dc: float = Field(alias="kwhDeliveredDc", ge=0, description="DC energy delivered (kWh)")
    battery_temp: float = Field(alias="batteryTemp", ge=-50, le=200, description="Battery temp (°C)")

    def to_reading(self) -> VehicleReading:
        return VehicleReading(
            vehicle_id=self.vehicle_id,
            soc=self.soc,
            kwh_delivered_dc=self.kwh_delivered_dc,
            battery_temp=self.battery_temp,
            timestamp=self.timestamp,
        )


_MODELS = {
    DeviceClass.METER: MeterReadingIn,
    DeviceClass.VEHICLE: VehicleReadingIn,
}


def _messages(exc: ValidationError, prefix: str = "") -> list:
    out = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        out.append(f"{prefix}{loc}: {err['msg']}" if loc else f"{prefix}{err['msg']}")
    return out


def detect_device_class(payload: dict) -> DeviceClass:
    tag = payload.get("type")
    if tag is not None:
        try:
            return DeviceClass(tag)
        except ValueError:
            raise ReadingRejected([f'type: must be "meter" or "vehicle", got {tag!r}']) from None

    has_meter = "meterId" in payload
    has_vehicle = "vehicleId" in payload
    if has_meter and has_vehicle:
        raise ReadingRejected(['Payload contains both "meterId" and "vehicleId"; set "type" to disambiguate'])
    if has_meter:
        return DeviceClass.METER
    if has_vehicle:
        return DeviceClass.VEHICLE
    raise ReadingRejected(['Payload must contain either "meterId" (meter) or "vehicleId" (vehicle)'])


def parse_reading(payload, device_class: DeviceClass | None = None, prefix: str = ""):
    """Validate one payload and build the matching reading. Raises ReadingRejected."""
    if not isinstance(payload, dict):
        raise ReadingRejected([f"{prefix}payload must be a JSON object"])
    if device_class is None:
        device_class = detect_device_class(payload)
    try:
        dto = _MODELS[device_class].model_validate(payload)
    except ValidationError as e:
        raise ReadingRejected(_messages(e, prefix)) from None
    return dto.to_reading()


def parse_batch(device_class: DeviceClass, payload) -> list:
    """Validate a {"readings": [...]} batch for one device class, collecting errors from every item."""
    readings = payload.get("readings") if isinstance(payload, dict) else None
    if not isinstance(readings, list):
        raise ReadingRejected(['readings: must be a list'])
    if not 1 <= len(readings) <= MAX_BATCH_SIZE:
        raise ReadingRejected([f"readings: must contain between 1 and {MAX_BATCH_SIZE} items"])

    parsed, errors = [], []
    for i, item in enumerate(readings):
        try:
            parsed.append(parse_reading(item, device_class, prefix=f"readings[{i}]."))
        except ReadingRejected as e:
            errors.extend(e.errors)
    if errors:
        raise ReadingRejected(errors)
    return parsed
