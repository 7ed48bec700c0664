# energy_engine/ingest.py
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from .current_state import apply_if_newer
from .errors import StorageFailure
from .readings import TABLES, DeviceClass, Reading


@dataclass(frozen=True)
class IngestResult:
    """Outcome of an accepted reading."""
    device_class: DeviceClass
    device_id: str
    timestamp: datetime
    current_updated: bool


class IngestionCoordinator:
    """
    Sole writer of history and current state.

    Each call is one transaction: every reading is appended to its history
    table, then offered to the current-state conditional upsert. Any database
    error rolls back the whole unit and surfaces as StorageFailure.
    """

    def __init__(self, session_factory, logger: logging.Logger | None = None):
        self._session_factory = session_factory
        self._log = logger or logging.getLogger(__name__)

    def ingest(self, reading: Reading) -> IngestResult:
        result = self._write([reading])[0]
        self._log.info("Ingested %s reading for %s", result.device_class.value, result.device_id)
        return result

    def ingest_many(self, readings) -> list[IngestResult]:
        """Ingest a batch all-or-nothing, applying readings in list order."""
        readings = list(readings)
        if not readings:
            return []
        results = self._write(readings)
        self._log.info(
            "Ingested batch of %d reading(s), %d current-state update(s)",
            len(results), sum(1 for r in results if r.current_updated),
        )
        return results

    def _write(self, readings) -> list[IngestResult]:
        results = []
        try:
            with self._session_factory() as session, session.begin():
                for reading in readings:
                    results.append(self._apply(session, reading))
        except SQLAlchemyError as e:
            self._log.error("Ingestion of %d reading(s) rolled back", len(readings), exc_info=True)
            raise StorageFailure(f"Ingestion failed and was rolled back: {e}") from e
        return results

    def _apply(self, session, reading: Reading) -> IngestResult:
        tables = TABLES[reading.device_class]
        # History is unconditional, stale and duplicate readings included
        session.execute(insert(tables.history).values(**reading.as_row()))
        updated = apply_if_newer(session, reading)
        if not updated:
            self._log.debug(
                "Stale %s reading for %s at %s kept in history only",
                reading.device_class.value, reading.device_id, reading.timestamp.isoformat(),
            )
        return IngestResult(
            device_class=reading.device_class,
            device_id=reading.device_id,
            timestamp=reading.timestamp,
            current_updated=updated,
        )
