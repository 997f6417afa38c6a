"""Value types shared by the submission engine.

Fee quotes are a closed set of two frozen dataclasses; code that consumes a
quote matches on its type instead of probing for fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

if TYPE_CHECKING:
    from mintbot.config.settings import Settings

GWEI = 10**9


def _gwei(value: int) -> str:
    return f"{Decimal(value) / GWEI:f} gwei"


@dataclass(frozen=True)
class LegacyFee:
    """Single gas-price fee model."""

    gas_price: int

    fee_model = "legacy"

    def tx_fields(self) -> Dict[str, int]:
        return {"gasPrice": self.gas_price}

    def describe(self) -> str:
        return f"gasPrice={_gwei(self.gas_price)}"


@dataclass(frozen=True)
class EIP1559Fee:
    """Dual-field priority-fee model."""

    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    fee_model = "eip1559"

    def tx_fields(self) -> Dict[str, int]:
        return {
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
        }

    def describe(self) -> str:
        return (
            f"maxFeePerGas={_gwei(self.max_fee_per_gas)} "
            f"maxPriorityFeePerGas={_gwei(self.max_priority_fee_per_gas)}"
        )


FeeQuote = Union[LegacyFee, EIP1559Fee]


@dataclass(frozen=True)
class FeeData:
    """What a network fee source reports; any field may be missing."""

    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas_price: Optional[int] = None


@dataclass(frozen=True)
class FeeOverrides:
    """Operator-supplied starting fees, in wei."""

    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas_price: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "FeeOverrides":
        return cls(
            max_fee_per_gas=settings.max_fee_wei,
            max_priority_fee_per_gas=settings.max_priority_fee_wei,
            gas_price=settings.gas_price_wei,
        )


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    initial_backoff_ms: int = 2000
    backoff_multiplier: Decimal = Decimal("1.6")
    bump_percent: int = 15

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_ATTEMPTS,
            initial_backoff_ms=settings.RETRY_BACKOFF_MS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            bump_percent=settings.GAS_BUMP_PERCENT,
        )


@dataclass(frozen=True)
class SubmissionRequest:
    """One attempt's contract call: quantity, attached value, gas ceiling and fee."""

    quantity: int
    value_wei: int
    fee: FeeQuote
    gas_limit: Optional[int] = None

    def tx_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"value": self.value_wei}
        if self.gas_limit is not None:
            params["gas"] = self.gas_limit
        params.update(self.fee.tx_fields())
        return params


@dataclass(frozen=True)
class CallOptions:
    """Base call options that every attempt's request is built from."""

    quantity: int
    value_wei: int
    gas_limit: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CallOptions":
        return cls(
            quantity=settings.MINT_AMOUNT,
            value_wei=settings.unit_price_wei * settings.MINT_AMOUNT,
            gas_limit=settings.GAS_LIMIT,
        )

    def with_fee(self, fee: FeeQuote) -> SubmissionRequest:
        return SubmissionRequest(
            quantity=self.quantity,
            value_wei=self.value_wei,
            fee=fee,
            gas_limit=self.gas_limit,
        )


@dataclass(frozen=True)
class Receipt:
    transaction_id: str
    block_number: int


@dataclass(frozen=True)
class Confirmed:
    transaction_id: str
    block_number: int

    @classmethod
    def from_receipt(cls, receipt: Receipt) -> "Confirmed":
        return cls(transaction_id=receipt.transaction_id, block_number=receipt.block_number)


@dataclass(frozen=True)
class Failed:
    error: BaseException
    retryable: bool = True


@dataclass(frozen=True)
class Exhausted:
    last_error: Optional[BaseException]
    attempts: int


AttemptResult = Union[Confirmed, Failed]
SubmissionOutcome = Union[Confirmed, Exhausted]

# Performs the network call for one fee quote and returns a pending handle
# exposing await_confirmation() -> Receipt.
SubmitFn = Callable[[FeeQuote], Any]


@dataclass
class RetryState:
    """Mutable state of a single RetryEngine.run invocation."""

    attempt: int
    current_fee: FeeQuote
    next_backoff_ms: int
    last_error: Optional[BaseException] = None


@dataclass(frozen=True)
class SigningUnit:
    index: int
    private_key: str = field(repr=False)

    @property
    def label(self) -> str:
        return f"wallet #{self.index + 1}"


@dataclass(frozen=True)
class UnitResult:
    index: int
    address: Optional[str]
    result: AttemptResult

    @property
    def ok(self) -> bool:
        return isinstance(self.result, Confirmed)

    @property
    def error(self) -> Optional[BaseException]:
        if isinstance(self.result, Failed):
            return self.result.error
        return None
