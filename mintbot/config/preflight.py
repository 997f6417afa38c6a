"""Preflight checks run before any network submission.

Every check raises ConfigurationError, which aborts the process before the
first transaction is sent.
"""

from typing import Optional

from web3 import Web3

from mintbot.chain.abi import abi_for_mode
from mintbot.config.settings import ConfigurationError, Settings


def check_endpoint(settings: Settings) -> None:
    """Check that an RPC endpoint is configured.

    Raises:
        ConfigurationError: If RPC_URL is missing or not an http(s)/ws(s) URL.
    """
    url = (settings.RPC_URL or "").strip()
    if not url:
        raise ConfigurationError("RPC_URL is empty")
    if not url.startswith(("http://", "https://", "ws://", "wss://")):
        raise ConfigurationError(f"RPC_URL must start with http(s):// or ws(s)://, got {url!r}")


def check_contract(settings: Settings) -> None:
    """Check that the target contract address is present and well-formed.

    Raises:
        ConfigurationError: If CONTRACT_ADDRESS is missing or invalid.
    """
    address = (settings.CONTRACT_ADDRESS or "").strip()
    if not address:
        raise ConfigurationError("CONTRACT_ADDRESS is empty")
    if not Web3.is_address(address):
        raise ConfigurationError(f"CONTRACT_ADDRESS is not a valid address: {address}")


def check_signers(settings: Settings) -> None:
    """Check that the configured mode has at least one private key.

    Raises:
        ConfigurationError: If no key is configured for the mode.
    """
    if settings.private_keys:
        return
    if settings.MODE == "multi":
        raise ConfigurationError("PRIVATE_KEYS is empty (comma-separated keys are required in multi mode)")
    raise ConfigurationError(f"PRIVATE_KEY is empty ({settings.MODE} mode)")


def check_abi(settings: Settings) -> None:
    """Check that the ABI for the configured mode can be built."""
    abi_for_mode(settings.MODE, settings.MINT_FUNC, settings.ABI_OVERRIDE)


def preflight_check(settings: Settings, require_signer: bool = True) -> None:
    """Run all preflight checks before an operation.

    Args:
        settings: Loaded settings.
        require_signer: If True, also require private keys for the mode.

    Raises:
        ConfigurationError: If any check fails.
    """
    check_endpoint(settings)
    check_contract(settings)
    check_abi(settings)
    if require_signer:
        check_signers(settings)


def get_dry_run_status(settings: Settings, dry_run: Optional[bool] = None) -> tuple[bool, Optional[str]]:
    """Get dry run status and reason.

    Returns:
        Tuple of (is_dry_run, reason_if_dry_run).
    """
    if dry_run:
        return (True, "--dry-run flag")
    if settings.DRY_RUN:
        return (True, "DRY_RUN=true")
    return (False, None)
