"""Error taxonomy shared by the intake, delivery and relay layers."""

from __future__ import annotations

from .model import FailureClassification


class RelaydeskError(Exception):
    pass


class ConfigurationError(RelaydeskError, RuntimeError):
    """A required setting or a configured entity reference is missing or invalid."""


class ValidationError(RelaydeskError, ValueError):
    """User-submitted input was rejected. Always shown back to the submitter."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class DeliveryFailure(RelaydeskError):
    def __init__(
        self,
        classification: FailureClassification,
        raw_code: int | str | None = None,
    ) -> None:
        super().__init__(f"delivery failed ({classification}, code={raw_code})")
        self.classification = classification
        self.raw_code = raw_code
