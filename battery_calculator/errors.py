"""Error taxonomy for the battery calculator.

InputError and InsufficientDataError are raised; DataQualityWarning is only
ever attached to results as metadata.
"""


class BatteryCalculatorError(Exception):
    """Base class for all calculator errors."""


class InputError(BatteryCalculatorError, ValueError):
    """Malformed input file, rows or settings."""


class InsufficientDataError(BatteryCalculatorError):
    """No metering records available for the requested year."""


class DataQualityWarning(UserWarning):
    """Non-fatal: the selected year had to be completed with imputed data."""

    def __init__(self, message: str, coverage_pct: float):
        super().__init__(message)
        self.coverage_pct = coverage_pct
