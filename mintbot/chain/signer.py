from typing import Iterable, List

from eth_account import Account
from eth_account.signers.local import LocalAccount

from mintbot.engine.errors import ConfigurationError
from mintbot.engine.models import SigningUnit


def signing_units(private_keys: Iterable[str]) -> List[SigningUnit]:
    """One signing unit per non-empty key, numbered in input order."""
    keys = [k.strip() for k in private_keys if k and k.strip()]
    return [SigningUnit(index=i, private_key=k) for i, k in enumerate(keys)]


def load_account(unit: SigningUnit) -> LocalAccount:
    """Build the local signing account for a unit.

    Raises:
        ConfigurationError: If the key is not a valid private key.
    """
    try:
        return Account.from_key(unit.private_key)
    except Exception as e:  # noqa: BLE001
        # Never echo the key itself.
        raise ConfigurationError(f"{unit.label}: invalid private key ({type(e).__name__})") from None
