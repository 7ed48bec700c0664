# energy_engine/main.py
import os
import logging
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import FastAPI, Body, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .db import get_engine, make_session_factory, ping
from .models import Base
from .analytics import AggregationEngine
from .errors import EngineError, ReadingRejected
from .ingest import IngestionCoordinator
from .mapping import MappingRegistry
from .performance import PerformanceCorrelator
from .readings import DeviceClass, utcnow
from .schemas import parse_batch, parse_reading

# Config
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PERFORMANCE_WINDOW_HOURS = int(os.environ.get("PERFORMANCE_WINDOW_HOURS", "24"))
PORT = int(os.environ.get("PORT", "3000"))

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger(__name__)

def iso_utc(dt: datetime | None):
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)

def reading_to_json(reading) -> dict | None:
    if reading is None:
        return None
    out = {_camel(k): v for k, v in asdict(reading).items() if k != "timestamp"}
    out["timestamp"] = iso_utc(reading.timestamp)
    return out

def summary_to_json(summary) -> dict:
    out = {"totalReadings": summary.count}
    for name, stats in summary.fields.items():
        out[_camel(name)] = {"sum": stats.sum, "avg": stats.avg, "min": stats.min, "max": stats.max}
    out["periodStart"] = iso_utc(summary.window.start)
    out["periodEnd"] = iso_utc(summary.window.end)
    return out

def performance_to_json(result) -> dict:
    return {
        "vehicleId": result.vehicle_id,
        "meterId": result.meter_id,
        "windowStart": iso_utc(result.window_start),
        "windowEnd": iso_utc(result.window_end),
        "acConsumedTotal": result.ac_consumed_total,
        "dcDeliveredTotal": result.dc_delivered_total,
        "efficiencyRatio": result.efficiency_ratio,
        "avgBatteryTemp": result.avg_battery_temp,
    }

def create_app(engine=None, clock=utcnow) -> FastAPI:
    engine = engine if engine is not None else get_engine()
    # Create DB tables if needed (new deploy)
    Base.metadata.create_all(bind=engine)
    session_factory = make_session_factory(engine)

    coordinator = IngestionCoordinator(session_factory, logger=logging.getLogger("energy_engine.ingest"))
    registry = MappingRegistry(session_factory)
    aggregation = AggregationEngine(session_factory, clock=clock)
    correlator = PerformanceCorrelator(registry, aggregation, clock=clock)

    app = FastAPI(title="Energy Ingestion Engine")
    app.state.engine = engine
    app.state.coordinator = coordinator
    app.state.registry = registry
    app.state.aggregation = aggregation
    app.state.correlator = correlator

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError):
        if isinstance(exc, ReadingRejected):
            body = {"errors": exc.errors}
        else:
            body = {"detail": str(exc), "retryable": exc.retryable}
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(status_code=exc.status_code, content=body, headers=headers)

    # ---------- Health ----------
    @app.get("/health")
    def health():
        try:
            ping(engine)
        except SQLAlchemyError as e:
            logger.warning("Health check failed: %s", e)
            return JSONResponse(status_code=503, content={"status": "error", "db": "unreachable", "detail": str(e)})
        return {"status": "ok", "db": "connected"}

    # ---------- Ingestion ----------
    @app.post("/v1/ingest", status_code=202)
    def ingest(payload: Any = Body(...)):
        """
        Single reading, meter or vehicle.
        - "type" selects the variant when present
        - otherwise meterId / vehicleId presence decides; both or neither -> 400
        """
        reading = parse_reading(payload)
        result = coordinator.ingest(reading)
        return {"type": result.device_class.value, "currentUpdated": result.current_updated}

    @app.post("/v1/ingest/{device_class}/batch", status_code=202)
    def ingest_batch(device_class: DeviceClass, payload: Any = Body(...)):
        readings = parse_batch(device_class, payload)
        results = coordinator.ingest_many(readings)
        return {
            "type": device_class.value,
            "accepted": len(results),
            "currentUpdated": sum(1 for r in results if r.current_updated),
        }

    @app.get("/api/mappings")
    def mappings():
        """vehicleId -> meterId for every registered vehicle."""
        return registry.all()

    # ---------- Analytics ----------
    @app.get("/api/analytics/performance/{vehicle_id}")
    def performance(vehicle_id: str, hours: int = Query(PERFORMANCE_WINDOW_HOURS, ge=1, le=24 * 31)):
        result = correlator.get_performance(vehicle_id, window=timedelta(hours=hours))
        return performance_to_json(result)

    @app.get("/api/analytics/{device_class}/summary")
    def summary(device_class: DeviceClass, device_id: str | None = Query(None, alias="deviceId")):
        """Trailing 24h summary, class-wide or for one device."""
        return summary_to_json(aggregation.summarize(device_class, device_id=device_id))

    @app.get("/api/analytics/{device_class}/devices/{device_id}")
    def device_stats(device_class: DeviceClass, device_id: str):
        current, history = aggregation.device_stats(device_class, device_id)
        return {
            f"{device_class.value}Id": device_id,
            "current": reading_to_json(current),
            "history": summary_to_json(history),
        }

    @app.get("/api/analytics/{device_class}/devices/{device_id}/history")
    def device_history(device_class: DeviceClass, device_id: str, limit: int = Query(200, ge=1, le=10_000)):
        rows = aggregation.recent_history(device_class, device_id, limit=limit)
        return [reading_to_json(r) for r in rows]

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    logger.info("Server listening on http://localhost:%d", PORT)
    uvicorn.run(app, host="0.0.0.0", port=PORT)
