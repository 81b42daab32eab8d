"""
Error taxonomy for the scenario map data pipeline.

Load failures are reported through these types and logged; none of them is
allowed to escape a load path and halt the application.
"""

from typing import List, Optional


class ScenarioMapError(Exception):
    """Base class for all data pipeline errors."""


class FetchError(ScenarioMapError):
    """Raw bytes for a dataset or polygon file could not be obtained."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Could not fetch {location}: {reason}")


class MissingColumnError(ScenarioMapError):
    """A required logical column has no matching header. Fatal for the load."""

    def __init__(self, logical_name: str, available: Optional[List[str]] = None):
        self.logical_name = logical_name
        self.available = list(available or [])
        super().__init__(
            f"Missing required column '{logical_name}' (available: {self.available})"
        )


class MalformedTableError(ScenarioMapError):
    """The text cannot be tokenized into rows at all. Fatal for the load."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed table: {reason}")


class MalformedRowError(ScenarioMapError):
    """A single data row is unusable. Recovered locally by skipping the row."""

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Row {line_number}: {reason}")


class EmptyIdentifierError(ScenarioMapError):
    """A municipality identifier has no digits left after cleaning."""

    def __init__(self, raw: object):
        self.raw = raw
        super().__init__(f"Empty municipality identifier: {raw!r}")


class UnparsableNumberError(ScenarioMapError):
    """A value cell is not a finite number. The cell reads as no data."""

    def __init__(self, raw: object):
        self.raw = raw
        super().__init__(f"Unparsable number: {raw!r}")
