# energy_engine/analytics.py
"""
Windowed summaries over the history tables.

Everything here reads history only; current state reflects a single point in
time per device and is never aggregated. Empty windows produce count=0 and
zeros for every aggregate instead of NULLs.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, select

from .current_state import get_current
from .readings import TABLES, DeviceClass, reading_from_row, to_utc, utcnow

DEFAULT_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class Window:
    """Event-time interval. start is inclusive; end is exclusive unless end_inclusive."""
    start: datetime | None = None
    end: datetime | None = None
    end_inclusive: bool = False

    def __post_init__(self):
        if self.start is not None:
            object.__setattr__(self, "start", to_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, "end", to_utc(self.end))

    @classmethod
    def trailing(cls, duration: timedelta, now: datetime, end_inclusive: bool = False) -> "Window":
        # Both bounds derive from the same instant
        end = to_utc(now)
        return cls(start=end - duration, end=end, end_inclusive=end_inclusive)

    @classmethod
    def unbounded(cls) -> "Window":
        return cls()

    def filters(self, ts_column) -> list:
        clauses = []
        if self.start is not None:
            clauses.append(ts_column >= self.start)
        if self.end is not None:
            clauses.append(ts_column <= self.end if self.end_inclusive else ts_column < self.end)
        return clauses


@dataclass(frozen=True)
class FieldStats:
    sum: float = 0.0
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0


@dataclass(frozen=True)
class Summary:
    device_class: DeviceClass
    window: Window
    count: int
    fields: dict = field(default_factory=dict)
    device_id: str | None = None

    def __getitem__(self, name: str) -> FieldStats:
        return self.fields[name]


class AggregationEngine:
    def __init__(self, session_factory, clock=utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def summarize(self, device_class: DeviceClass, window: Window | None = None,
                  device_id: str | None = None) -> Summary:
        """
        count/sum/avg/min/max for every numeric field of a device class.

        - window defaults to the trailing 24h, [now - 24h, now)
        - device_id scopes the summary to one device; None means class-wide
        """
        device_class = DeviceClass(device_class)
        if window is None:
            window = Window.trailing(DEFAULT_WINDOW, self._clock())
        tables = TABLES[device_class]
        history = tables.history

        columns = [func.count(history.id)]
        for name in tables.metric_fields:
            col = getattr(history, name)
            columns += [
                func.coalesce(func.sum(col), 0),
                func.coalesce(func.avg(col), 0),
                func.coalesce(func.min(col), 0),
                func.coalesce(func.max(col), 0),
            ]

        conditions = window.filters(history.ts)
        if device_id is not None:
            conditions.append(getattr(history, tables.id_column) == device_id)

        stmt = select(*columns)
        if conditions:
            stmt = stmt.where(*conditions)
        with self._session_factory() as session:
            row = session.execute(stmt).one()

        count, *values = row
        stats = {}
        for i, name in enumerate(tables.metric_fields):
            s, a, lo, hi = (float(v) for v in values[i * 4:(i + 1) * 4])
            stats[name] = FieldStats(sum=s, avg=a, min=lo, max=hi)
        return Summary(device_class=device_class, window=window, count=int(count),
                       fields=stats, device_id=device_id)

    def device_stats(self, device_class: DeviceClass, device_id: str):
        """Current state (or None) plus lifetime history summary for one device."""
        device_class = DeviceClass(device_class)
        with self._session_factory() as session:
            current = get_current(session, device_class, device_id)
        history = self.summarize(device_class, Window.unbounded(), device_id=device_id)
        return current, history

    def recent_history(self, device_class: DeviceClass, device_id: str, limit: int = 200) -> list:
        """Newest-first by event time, not arrival order."""
        device_class = DeviceClass(device_class)
        tables = TABLES[device_class]
        history = tables.history
        stmt = (
            select(history)
            .where(getattr(history, tables.id_column) == device_id)
            .order_by(history.ts.desc(), history.id.desc())
            .limit(limit)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [reading_from_row(device_class, r) for r in rows]
