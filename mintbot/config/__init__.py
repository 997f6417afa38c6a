"""Configuration module for mintbot.

Provides settings loading, preflight checks and logging setup.
"""

from mintbot.config.log import configure_logging
from mintbot.config.preflight import (
    check_abi,
    check_contract,
    check_endpoint,
    check_signers,
    get_dry_run_status,
    preflight_check,
)
from mintbot.config.settings import (
    MODES,
    ConfigurationError,
    Settings,
    load_settings,
)

__all__ = [
    # Settings
    "Settings",
    "MODES",
    "load_settings",
    "ConfigurationError",
    # Preflight checks
    "preflight_check",
    "check_endpoint",
    "check_contract",
    "check_signers",
    "check_abi",
    "get_dry_run_status",
    # Logging
    "configure_logging",
]
