class EngineError(Exception):
    """Base exception for station resolution, refresh and storage errors."""
    pass

class EmptyCatalog(EngineError):
    """Raised when a station catalog has no valid entries after filtering."""
    pass

class UpstreamUnavailable(EngineError):
    """Raised on network errors, timeouts or non-success status from a provider."""
    pass

class MalformedUpstreamPayload(EngineError):
    """Raised when a provider response fails shape validation."""
    pass

class NoUsableStation(EngineError):
    """Raised when the nearest station is too far away to be used."""

    def __init__(self, station_id: str, distance: float, max_distance: float):
        self.station_id = station_id
        self.distance = distance
        self.max_distance = max_distance
        super().__init__(
            f"Nearest station {station_id} is {distance:.1f} km away (limit {max_distance:.0f} km)"
        )

class NoSeriesData(EngineError):
    """Raised when a provider returns no samples for a station."""
    pass

class PersistFailed(EngineError):
    """Raised when a record cannot be written to storage."""
    pass

class StorageReadFault(EngineError):
    """Raised by the store on read errors; never surfaced to callers."""
    pass
