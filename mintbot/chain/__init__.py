"""Chain module for mintbot.

Provides the web3 fee source and submission client, ABI building and signers.
"""

from mintbot.chain.abi import SIMPLE_MINT_ABI, abi_for_mode, build_abi, mint_function_abi
from mintbot.chain.client import (
    ContractSubmitter,
    PendingTransaction,
    SubmitterFactory,
    Web3FeeSource,
    build_contract,
    connect,
)
from mintbot.chain.signer import load_account, signing_units

__all__ = [
    "connect",
    "build_contract",
    "Web3FeeSource",
    "PendingTransaction",
    "ContractSubmitter",
    "SubmitterFactory",
    "SIMPLE_MINT_ABI",
    "abi_for_mode",
    "build_abi",
    "mint_function_abi",
    "signing_units",
    "load_account",
]
