from __future__ import annotations

from datetime import datetime, timezone

import pytest

from energy_engine.errors import ReadingRejected
from energy_engine.readings import DeviceClass, MeterReading, VehicleReading
from energy_engine.schemas import MAX_BATCH_SIZE, detect_device_class, parse_batch, parse_reading

METER = {
    "meterId": "METER-001",
    "kwhConsumedAc": 12.5,
    "voltage": 230.4,
    "timestamp": "2026-02-11T10:30:00Z",
}

VEHICLE = {
    "vehicleId": "VEH-001",
    "soc": 78.5,
    "kwhDeliveredDc": 6.2,
    "batteryTemp": 32.1,
    "timestamp": "2026-02-11T10:30:00Z",
}


def _rejection(payload, **kwargs) -> list[str]:
    with pytest.raises(ReadingRejected) as excinfo:
        parse_reading(payload, **kwargs)
    return excinfo.value.errors


def test_meter_payload_builds_meter_reading() -> None:
    reading = parse_reading(METER)

    assert reading == MeterReading(
        meter_id="METER-001",
        kwh_consumed_ac=12.5,
        voltage=230.4,
        timestamp=datetime(2026, 2, 11, 10, 30, tzinfo=timezone.utc),
    )


def test_vehicle_payload_builds_vehicle_reading() -> None:
    reading = parse_reading(VEHICLE)

    assert isinstance(reading, VehicleReading)
    assert reading.device_id == "VEH-001"
    assert reading.battery_temp == 32.1


def test_offset_timestamps_are_normalized_to_utc() -> None:
    reading = parse_reading({**METER, "timestamp": "2026-02-11T12:30:00+02:00"})

    assert reading.timestamp == datetime(2026, 2, 11, 10, 30, tzinfo=timezone.utc)
    assert reading.timestamp.utcoffset().total_seconds() == 0


def test_every_violation_is_reported() -> None:
    errors = _rejection({**VEHICLE, "soc": 150, "batteryTemp": -80, "kwhDeliveredDc": -1})

    assert len(errors) == 3
    assert any(e.startswith("soc:") for e in errors)
    assert any(e.startswith("batteryTemp:") for e in errors)
    assert any(e.startswith("kwhDeliveredDc:") for e in errors)


def test_missing_fields_are_reported() -> None:
    errors = _rejection({"meterId": "METER-001"})

    assert {e.split(":")[0] for e in errors} == {"kwhConsumedAc", "voltage", "timestamp"}


@pytest.mark.parametrize(
    "meter_id",
    ["", "M" * 101],
)
def test_meter_id_length_bounds(meter_id) -> None:
    errors = _rejection({**METER, "meterId": meter_id})

    assert len(errors) == 1
    assert errors[0].startswith("meterId:")


def test_meter_id_at_limit_is_accepted() -> None:
    assert parse_reading({**METER, "meterId": "M" * 100}).meter_id == "M" * 100


@pytest.mark.parametrize("timestamp", [1707647400, "1707647400", "yesterday", None])
def test_timestamp_must_be_iso_string(timestamp) -> None:
    errors = _rejection({**METER, "timestamp": timestamp})

    assert len(errors) == 1
    assert errors[0].startswith("timestamp:")


@pytest.mark.parametrize("timestamp", ["0001-01-01T00:00:00+05:00", "9999-12-31T23:59:59-05:00"])
def test_timestamp_outside_utc_range_is_rejected(timestamp) -> None:
    errors = _rejection({**METER, "timestamp": timestamp})

    assert len(errors) == 1
    assert errors[0].startswith("timestamp:")
    assert "out of range" in errors[0]


def test_unknown_fields_are_rejected() -> None:
    errors = _rejection({**METER, "currentA": 16})

    assert errors == ["currentA: Extra inputs are not permitted"]


def test_payload_without_any_id_is_rejected() -> None:
    errors = _rejection({"voltage": 230, "timestamp": "2026-02-11T10:30:00Z"})

    assert errors == ['Payload must contain either "meterId" (meter) or "vehicleId" (vehicle)']


def test_payload_with_both_ids_needs_a_type_tag() -> None:
    errors = _rejection({**METER, "vehicleId": "VEH-001"})

    assert "disambiguate" in errors[0]


def test_type_tag_selects_variant() -> None:
    assert detect_device_class({**METER, "type": "meter"}) is DeviceClass.METER
    assert isinstance(parse_reading({**VEHICLE, "type": "vehicle"}), VehicleReading)


def test_type_tag_must_agree_with_fields() -> None:
    errors = _rejection({**METER, "type": "vehicle"})

    assert any(e.startswith("meterId:") for e in errors)
    assert any(e.startswith("vehicleId:") for e in errors)


def test_unknown_type_tag_is_rejected() -> None:
    errors = _rejection({**METER, "type": "inverter"})

    assert errors[0].startswith("type:")


def test_non_object_payload_is_rejected() -> None:
    assert _rejection([METER]) == ["payload must be a JSON object"]


def test_batch_reports_errors_by_index() -> None:
    bad = {**METER, "voltage": -1}
    with pytest.raises(ReadingRejected) as excinfo:
        parse_batch(DeviceClass.METER, {"readings": [METER, bad, VEHICLE]})

    errors = excinfo.value.errors
    assert any(e.startswith("readings[1].voltage:") for e in errors)
    # vehicle fields are not part of the meter contract
    assert any(e.startswith("readings[2].meterId:") for e in errors)
    assert not any(e.startswith("readings[0].") for e in errors)


def test_batch_parses_every_item() -> None:
    readings = parse_batch(DeviceClass.VEHICLE, {"readings": [VEHICLE, {**VEHICLE, "soc": 80}]})

    assert [r.soc for r in readings] == [78.5, 80]


@pytest.mark.parametrize("payload", [{"readings": []}, {"readings": [METER] * (MAX_BATCH_SIZE + 1)}, {}, []])
def test_batch_size_and_shape(payload) -> None:
    with pytest.raises(ReadingRejected):
        parse_batch(DeviceClass.METER, payload)
