# energy_engine/performance.py
from dataclasses import dataclass
from datetime import datetime, timedelta

from .analytics import DEFAULT_WINDOW, AggregationEngine, Window
from .errors import MappingNotFound
from .mapping import MappingRegistry
from .readings import DeviceClass, utcnow


@dataclass(frozen=True)
class PerformanceWindowResult:
    vehicle_id: str
    meter_id: str
    window_start: datetime
    window_end: datetime
    ac_consumed_total: float
    dc_delivered_total: float
    efficiency_ratio: float | None
    avg_battery_temp: float


def efficiency_ratio(ac_total: float, dc_total: float) -> float | None:
    """DC delivered over AC consumed, 4 decimals. None when nothing was consumed.

    Not clamped: a ratio above 1.0 points at a metering problem and is reported as is.
    """
    if ac_total == 0:
        return None
    return round(dc_total / ac_total, 4)


class PerformanceCorrelator:
    """Joins a vehicle's DC delivery against its mapped meter's AC consumption."""

    def __init__(self, registry: MappingRegistry, aggregation: AggregationEngine, clock=utcnow):
        self._registry = registry
        self._aggregation = aggregation
        self._clock = clock

    def get_performance(self, vehicle_id: str, window: timedelta = DEFAULT_WINDOW) -> PerformanceWindowResult:
        meter_id = self._registry.resolve_meter(vehicle_id)
        if meter_id is None:
            raise MappingNotFound(vehicle_id)

        # [now - window, now], inclusive on both ends
        span = Window.trailing(window, self._clock(), end_inclusive=True)

        ac = self._aggregation.summarize(DeviceClass.METER, span, device_id=meter_id)
        dc = self._aggregation.summarize(DeviceClass.VEHICLE, span, device_id=vehicle_id)

        ac_total = ac["kwh_consumed_ac"].sum
        dc_total = dc["kwh_delivered_dc"].sum
        return PerformanceWindowResult(
            vehicle_id=vehicle_id,
            meter_id=meter_id,
            window_start=span.start,
            window_end=span.end,
            ac_consumed_total=ac_total,
            dc_delivered_total=dc_total,
            efficiency_ratio=efficiency_ratio(ac_total, dc_total),
            avg_battery_temp=dc["battery_temp"].avg,
        )
