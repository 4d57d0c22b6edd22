"""Hosted backend access."""

from gestao_contas.backend.client import (
    AuthenticationError,
    BackendClient,
    BackendError,
    Filter,
    RateLimitError,
    eq,
    gte,
    in_,
    lte,
)

__all__ = [
    "BackendClient",
    "BackendError",
    "AuthenticationError",
    "RateLimitError",
    "Filter",
    "eq",
    "gte",
    "lte",
    "in_",
]
