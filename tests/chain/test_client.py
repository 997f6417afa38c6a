from unittest.mock import MagicMock

import pytest
from web3.exceptions import TimeExhausted, TransactionNotFound

from mintbot.chain.client import (
    DEFAULT_PRIORITY_FEE_WEI,
    ContractSubmitter,
    PendingTransaction,
    SubmitterFactory,
    Web3FeeSource,
)
from mintbot.engine.errors import SubmissionError, TransactionReverted
from mintbot.engine.models import CallOptions, EIP1559Fee, LegacyFee, Receipt, SigningUnit

GWEI = 10**9
HASH_1 = b"\x11" * 32
HASH_2 = b"\x22" * 32
HEX_1 = "0x" + "11" * 32
HEX_2 = "0x" + "22" * 32


def receipt(tx_hash=HASH_1, status=1, block=1234):
    return {"transactionHash": tx_hash, "blockNumber": block, "status": status}


class TestWeb3FeeSource:
    def test_eip1559_network(self):
        w3 = MagicMock()
        w3.eth.get_block.return_value = {"baseFeePerGas": 10 * GWEI}
        w3.eth.gas_price = 12 * GWEI

        data = Web3FeeSource(w3).get_fee_data()

        assert data.max_priority_fee_per_gas == DEFAULT_PRIORITY_FEE_WEI
        assert data.max_fee_per_gas == 20 * GWEI + DEFAULT_PRIORITY_FEE_WEI
        assert data.gas_price == 12 * GWEI
        w3.eth.get_block.assert_called_once_with("latest")

    def test_legacy_network(self):
        w3 = MagicMock()
        w3.eth.get_block.return_value = {"number": 5}
        w3.eth.gas_price = 3 * GWEI

        data = Web3FeeSource(w3).get_fee_data()

        assert data.max_fee_per_gas is None
        assert data.max_priority_fee_per_gas is None
        assert data.gas_price == 3 * GWEI


class TestPendingTransaction:
    def test_confirmed(self):
        w3 = MagicMock()
        w3.eth.wait_for_transaction_receipt.return_value = receipt()

        result = PendingTransaction(w3, HASH_1, timeout_seconds=30, poll_seconds=1).await_confirmation()

        assert result == Receipt(HEX_1, 1234)
        w3.eth.wait_for_transaction_receipt.assert_called_once_with(HEX_1, timeout=30, poll_latency=1)

    def test_timeout_becomes_submission_error(self):
        w3 = MagicMock()
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("too slow")

        with pytest.raises(SubmissionError) as info:
            PendingTransaction(w3, HASH_1, timeout_seconds=5).await_confirmation()

        assert info.value.retryable is True
        assert info.value.tx_hash == HEX_1
        assert isinstance(info.value.cause, TimeExhausted)

    def test_reverted_receipt_is_final(self):
        w3 = MagicMock()
        w3.eth.wait_for_transaction_receipt.return_value = receipt(status=0)

        with pytest.raises(TransactionReverted) as info:
            PendingTransaction(w3, HASH_1).await_confirmation()

        assert info.value.retryable is False


def make_submitter(w3, contract=None, chain_id=None):
    account = MagicMock()
    account.address = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
    account.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")
    contract = contract or MagicMock()
    contract.functions.__getitem__.return_value.return_value.build_transaction.side_effect = lambda params: dict(
        params, data="0x"
    )
    return ContractSubmitter(w3, contract, "mint", account, chain_id=chain_id), contract, account


class TestContractSubmitter:
    def test_submit_builds_signs_and_sends(self):
        w3 = MagicMock()
        w3.eth.get_transaction_count.return_value = 7
        w3.eth.send_raw_transaction.return_value = HASH_1
        submitter, contract, account = make_submitter(w3, chain_id=1)
        request = CallOptions(quantity=3, value_wei=300, gas_limit=90_000).with_fee(EIP1559Fee(30 * GWEI, 2 * GWEI))

        pending = submitter.submit(request)

        assert pending.tx_hash == HEX_1
        contract.functions.__getitem__.assert_called_with("mint")
        contract.functions.__getitem__.return_value.assert_called_with(3)
        tx = account.sign_transaction.call_args[0][0]
        assert tx["nonce"] == 7
        assert tx["value"] == 300
        assert tx["gas"] == 90_000
        assert tx["chainId"] == 1
        assert tx["maxFeePerGas"] == 30 * GWEI
        assert tx["maxPriorityFeePerGas"] == 2 * GWEI
        assert "gasPrice" not in tx
        w3.eth.send_raw_transaction.assert_called_once_with(b"signed")

    def test_nonce_is_pinned_across_attempts(self):
        w3 = MagicMock()
        w3.eth.get_transaction_count.return_value = 4
        w3.eth.send_raw_transaction.side_effect = [HASH_1, HASH_2]
        w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")
        submitter, _, account = make_submitter(w3)
        options = CallOptions(quantity=1, value_wei=0)

        submitter.submit(options.with_fee(LegacyFee(20 * GWEI)))
        w3.eth.get_transaction_count.return_value = 5
        second = submitter.submit(options.with_fee(LegacyFee(23 * GWEI)))

        assert second.tx_hash == HEX_2
        nonces = [c[0][0]["nonce"] for c in account.sign_transaction.call_args_list]
        assert nonces == [4, 4]
        w3.eth.get_transaction_count.assert_called_once_with(submitter.address, "pending")

    def test_already_included_attempt_is_not_resent(self):
        w3 = MagicMock()
        w3.eth.get_transaction_count.return_value = 0
        w3.eth.send_raw_transaction.return_value = HASH_1
        w3.eth.get_transaction_receipt.return_value = receipt(HASH_1, block=99)
        submitter, _, _ = make_submitter(w3)
        options = CallOptions(quantity=1, value_wei=0)

        submitter.submit(options.with_fee(LegacyFee(GWEI)))
        pending = submitter.submit(options.with_fee(LegacyFee(2 * GWEI)))

        assert pending.await_confirmation() == Receipt(HEX_1, 99)
        assert w3.eth.send_raw_transaction.call_count == 1

    def test_rpc_rejection_becomes_submission_error(self):
        w3 = MagicMock()
        w3.eth.get_transaction_count.return_value = 0
        w3.eth.send_raw_transaction.side_effect = ValueError({"code": -32000, "message": "transaction underpriced"})
        submitter, _, _ = make_submitter(w3)

        with pytest.raises(SubmissionError, match="underpriced"):
            submitter.submit(CallOptions(quantity=1, value_wei=0).with_fee(LegacyFee(GWEI)))


def test_factory_binds_unit_account():
    w3 = MagicMock()
    factory = SubmitterFactory(w3, MagicMock(), "mint", chain_id=8453, confirmation_timeout=30)
    key = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

    submitter = factory(SigningUnit(index=0, private_key=key))

    assert submitter.address == "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
    assert submitter.chain_id == 8453
    assert submitter.confirmation_timeout == 30
