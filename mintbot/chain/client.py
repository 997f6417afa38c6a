"""web3.py implementations of the network fee source and the submission client."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests
import structlog
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3Exception

from mintbot.chain.signer import load_account
from mintbot.engine.errors import SubmissionError, TransactionReverted
from mintbot.engine.models import FeeData, Receipt, SigningUnit, SubmissionRequest

logger = structlog.get_logger(__name__)

# Same default tip ethers v5 getFeeData() reports on EIP-1559 networks.
DEFAULT_PRIORITY_FEE_WEI = 1_500_000_000

_RPC_ERRORS = (Web3Exception, ValueError, requests.RequestException)


def connect(rpc_url: str, timeout_seconds: float = 60) -> Web3:
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_seconds}))


def build_contract(w3: Web3, address: str, abi: List[Dict[str, Any]]) -> Any:
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)


def _to_hex(value: Any) -> str:
    if isinstance(value, str):
        return value
    return Web3.to_hex(value)


def _raw_transaction(signed: Any) -> Any:
    raw = getattr(signed, "raw_transaction", None)
    if raw is None:
        raw = getattr(signed, "rawTransaction", None)
    return raw


class Web3FeeSource:
    """Reports fee data from the latest block and ``eth_gasPrice``.

    On networks with a base fee, max fee is ``2 * baseFee + priority`` with a
    1.5 gwei priority tip; the legacy gas price is always reported when the
    node answers.
    """

    def __init__(self, w3: Web3):
        self.w3 = w3

    def get_fee_data(self) -> FeeData:
        block = self.w3.eth.get_block("latest")
        gas_price: Optional[int] = None
        try:
            gas_price = int(self.w3.eth.gas_price)
        except _RPC_ERRORS as e:
            logger.debug("gas_price_unavailable", error=str(e))

        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeData(gas_price=gas_price)

        priority = DEFAULT_PRIORITY_FEE_WEI
        return FeeData(
            max_fee_per_gas=int(base_fee) * 2 + priority,
            max_priority_fee_per_gas=priority,
            gas_price=gas_price,
        )


class PendingTransaction:
    """Handle for a sent transaction; ``await_confirmation`` blocks until mined."""

    def __init__(
        self,
        w3: Web3,
        tx_hash: Any,
        timeout_seconds: float = 120,
        poll_seconds: float = 2,
        receipt: Optional[Any] = None,
    ):
        self.w3 = w3
        self.tx_hash = _to_hex(tx_hash)
        self.timeout_seconds = timeout_seconds
        self.poll_seconds = poll_seconds
        self._receipt = receipt

    def await_confirmation(self) -> Receipt:
        receipt = self._receipt
        if receipt is None:
            try:
                receipt = self.w3.eth.wait_for_transaction_receipt(
                    self.tx_hash,
                    timeout=self.timeout_seconds,
                    poll_latency=self.poll_seconds,
                )
            except TimeExhausted as e:
                raise SubmissionError(
                    f"Transaction {self.tx_hash} not confirmed within {self.timeout_seconds}s",
                    cause=e,
                    tx_hash=self.tx_hash,
                ) from e
            except _RPC_ERRORS as e:
                raise SubmissionError(
                    f"Confirmation of {self.tx_hash} failed: {e}",
                    cause=e,
                    tx_hash=self.tx_hash,
                ) from e

        if receipt["status"] != 1:
            raise TransactionReverted(
                f"Transaction {self.tx_hash} reverted in block {receipt['blockNumber']}",
                tx_hash=self.tx_hash,
            )
        return Receipt(
            transaction_id=_to_hex(receipt["transactionHash"]),
            block_number=int(receipt["blockNumber"]),
        )


class ContractSubmitter:
    """Submission client for one signer.

    The signer's pending nonce is read once and reused for every attempt, so an
    escalated resubmission replaces the previous one instead of adding a second
    transaction. Before sending again, earlier hashes are checked and an
    already-mined one is returned instead.
    """

    def __init__(
        self,
        w3: Web3,
        contract: Any,
        function_name: str,
        account: Any,
        chain_id: Optional[int] = None,
        confirmation_timeout: float = 120,
        poll_seconds: float = 2,
    ):
        self.w3 = w3
        self.contract = contract
        self.function_name = function_name
        self.account = account
        self.address = account.address
        self.chain_id = chain_id
        self.confirmation_timeout = confirmation_timeout
        self.poll_seconds = poll_seconds
        self._nonce: Optional[int] = None
        self._sent: List[str] = []

    def submit(self, request: SubmissionRequest) -> PendingTransaction:
        included = self._find_included()
        if included is not None:
            return included

        try:
            if self._nonce is None:
                self._nonce = self.w3.eth.get_transaction_count(self.address, "pending")
            params: Dict[str, Any] = {"from": self.address, "nonce": self._nonce}
            params.update(request.tx_params())
            if self.chain_id is not None:
                params["chainId"] = self.chain_id

            call = self.contract.functions[self.function_name](request.quantity)
            tx = call.build_transaction(params)
            signed = self.account.sign_transaction(tx)
            tx_hash = _to_hex(self.w3.eth.send_raw_transaction(_raw_transaction(signed)))
        except _RPC_ERRORS as e:
            raise SubmissionError(f"Submission rejected: {e}", cause=e) from e

        self._sent.append(tx_hash)
        logger.debug("raw_transaction_sent", address=self.address, nonce=self._nonce, tx_hash=tx_hash)
        return self._pending(tx_hash)

    def _find_included(self) -> Optional[PendingTransaction]:
        for tx_hash in self._sent:
            try:
                receipt = self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                continue
            except _RPC_ERRORS as e:
                logger.debug("receipt_lookup_failed", tx_hash=tx_hash, error=str(e))
                continue
            if receipt is None:
                continue
            logger.info("earlier_attempt_included", address=self.address, tx_hash=tx_hash)
            return self._pending(tx_hash, receipt=receipt)
        return None

    def _pending(self, tx_hash: str, receipt: Optional[Any] = None) -> PendingTransaction:
        return PendingTransaction(
            self.w3,
            tx_hash,
            timeout_seconds=self.confirmation_timeout,
            poll_seconds=self.poll_seconds,
            receipt=receipt,
        )


class SubmitterFactory:
    """Builds a ContractSubmitter bound to each signing unit."""

    def __init__(
        self,
        w3: Web3,
        contract: Any,
        function_name: str,
        chain_id: Optional[int] = None,
        confirmation_timeout: float = 120,
        poll_seconds: float = 2,
    ):
        self.w3 = w3
        self.contract = contract
        self.function_name = function_name
        self.chain_id = chain_id
        self.confirmation_timeout = confirmation_timeout
        self.poll_seconds = poll_seconds

    def __call__(self, unit: SigningUnit) -> ContractSubmitter:
        return ContractSubmitter(
            self.w3,
            self.contract,
            self.function_name,
            load_account(unit),
            chain_id=self.chain_id,
            confirmation_timeout=self.confirmation_timeout,
            poll_seconds=self.poll_seconds,
        )
