class UposathaError(Exception):
    """Base error."""

class OracleUnavailable(UposathaError):
    """Raised when the tithi oracle cannot answer at all (e.g. ephemeris not loadable)."""

class AstronomicalIndeterminate(UposathaError):
    """Raised when no sunrise/sunset exists for the observer on that day (polar regions)."""

class StoreIOError(UposathaError):
    """Raised when the record store cannot be read or written."""

class InvalidRecord(UposathaError, ValueError):
    """Raised for observance records with unknown or out-of-range fields."""

class BackupError(UposathaError):
    """Raised when a backup payload cannot be restored."""

class LocationError(UposathaError):
    """Raised when the observer position cannot be found from the network."""
