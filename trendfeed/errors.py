"""Exception hierarchy."""


class TrendfeedError(Exception):
    """Base class for all trendfeed errors."""


class StoreError(TrendfeedError):
    """Backing store read or write failed. Fatal to the request."""


class AdapterError(TrendfeedError):
    """A single source fetch failed."""

    def __init__(self, source_id: str, message: str):
        super().__init__(message)
        self.source_id = source_id


class AdapterTimeoutError(AdapterError):
    """A source fetch did not settle within the adapter timeout."""

    def __init__(self, source_id: str, timeout: float):
        super().__init__(source_id, f"Adapter timeout after {timeout:g}s")
        self.timeout = timeout


class UnknownSourceError(TrendfeedError):
    """A source id is not present in the catalogue."""


class InvalidQueryError(TrendfeedError):
    """A query parameter is missing or outside its allowed values."""

    def __init__(self, message: str, valid_values: list = None):
        super().__init__(message)
        self.valid_values = valid_values
