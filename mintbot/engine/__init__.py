"""Transaction submission engine for mintbot.

Provides fee resolution, fee escalation, the retry engine and the batch runner.
"""

from mintbot.engine.batch import SubmissionBatchRunner
from mintbot.engine.errors import (
    ConfigurationError,
    MintBotError,
    RetryExhaustedError,
    SubmissionError,
    TransactionReverted,
    UnitError,
)
from mintbot.engine.fees import FALLBACK_GAS_PRICE_WEI, FeeQuoteResolver, bump_fee
from mintbot.engine.models import (
    CallOptions,
    Confirmed,
    EIP1559Fee,
    Exhausted,
    Failed,
    FeeData,
    FeeOverrides,
    FeeQuote,
    LegacyFee,
    Receipt,
    RetryPolicy,
    RetryState,
    SigningUnit,
    SubmissionRequest,
    UnitResult,
)
from mintbot.engine.retry import (
    AttemptPlan,
    RetryEngine,
    backoff_schedule,
    classify_failure,
    next_backoff,
    plan_attempts,
)

__all__ = [
    # Fees
    "FeeQuote",
    "LegacyFee",
    "EIP1559Fee",
    "FeeData",
    "FeeOverrides",
    "FeeQuoteResolver",
    "FALLBACK_GAS_PRICE_WEI",
    "bump_fee",
    # Requests and outcomes
    "CallOptions",
    "SubmissionRequest",
    "Receipt",
    "Confirmed",
    "Failed",
    "Exhausted",
    "RetryState",
    "SigningUnit",
    "UnitResult",
    # Retry
    "RetryPolicy",
    "RetryEngine",
    "AttemptPlan",
    "plan_attempts",
    "backoff_schedule",
    "next_backoff",
    "classify_failure",
    "SubmissionBatchRunner",
    # Errors
    "MintBotError",
    "ConfigurationError",
    "SubmissionError",
    "TransactionReverted",
    "RetryExhaustedError",
    "UnitError",
]
