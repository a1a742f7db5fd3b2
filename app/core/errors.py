"""PERFORMA — Engine Exceptions."""


class PerformanceError(Exception):
    """Base class for all engine errors."""


class InvalidThresholdsError(PerformanceError):
    """Raised when a threshold band is not ordered minimum < target < excellent."""

    def __init__(self, message: str, kpi_id: int | None = None):
        self.kpi_id = kpi_id
        super().__init__(message)


class MetricSourceError(PerformanceError):
    """Raised when an external data source lookup fails."""

    def __init__(self, message: str, source_type: str = ""):
        self.source_type = source_type
        super().__init__(message)


class PIPError(PerformanceError):
    """Raised when a PIP lifecycle transition is not allowed."""


class PIPNotFoundError(PIPError):
    """Raised when a PIP id does not exist."""

    def __init__(self, pip_id: int):
        self.pip_id = pip_id
        super().__init__(f"PIP {pip_id} not found")


class HRAPIError(MetricSourceError):
    """Raised when the HR system API returns an error."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message, source_type="hr_api")
