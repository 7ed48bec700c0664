# energy_engine/errors.py


class EngineError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    retryable = False


class ReadingRejected(EngineError):
    """A payload failed the field contract. Carries every violation, not just the first."""

    status_code = 400

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "reading rejected")


class MappingNotFound(EngineError):
    status_code = 404

    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id
        super().__init__(f"No meter mapping found for vehicle {vehicle_id}")


class StorageFailure(EngineError):
    """The history append + current-state update unit failed and was rolled back.

    Safe to retry: replaying a reading never moves current state backwards,
    it only adds a duplicate history row.
    """

    status_code = 503
    retryable = True
