"""Exception hierarchy for gestao-contas."""

from typing import Any


class GestaoContasError(Exception):
    """Base exception for all gestao-contas errors."""


class ValidationError(GestaoContasError):
    """Submitted data was rejected before any persistence attempt.

    ``errors`` maps a field name to a user-facing message, so callers can
    surface each problem next to its input.
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(f"Invalid data: {summary}")


class UploadError(GestaoContasError):
    """A file could not be uploaded to object storage."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"Erro no upload do arquivo {filename}: {reason}")
        self.filename = filename
        self.reason = reason


class PermissionDeniedError(GestaoContasError):
    """The session lacks the capability required for an operation."""

    def __init__(self, management: Any, tab: Any, capability: Any):
        super().__init__(
            f"Missing '{getattr(capability, 'value', capability)}' permission on "
            f"{getattr(tab, 'value', tab)} ({getattr(management, 'value', management)})"
        )
        self.management = management
        self.tab = tab
        self.capability = capability


class PostalCodeError(GestaoContasError):
    """Postal code lookup failed or returned no address."""
