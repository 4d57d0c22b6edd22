"""Configuration module for gestao-contas."""

from gestao_contas.config.logging import (
    bind_session,
    clear_session,
    configure_logging,
    get_logger,
)
from gestao_contas.config.settings import FlatSettings, get_settings

__all__ = [
    "FlatSettings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "bind_session",
    "clear_session",
]
