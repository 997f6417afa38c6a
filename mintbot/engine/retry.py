import time
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Any, Callable, Iterator, List, Optional, Union

import requests
import structlog
from tenacity import Retrying, retry_if_result, stop_after_attempt
from web3.exceptions import ContractLogicError, TimeExhausted

from mintbot.engine.errors import RetryExhaustedError, SubmissionError, TransactionReverted
from mintbot.engine.fees import FeeQuoteResolver, bump_fee
from mintbot.engine.models import (
    AttemptResult,
    Confirmed,
    Exhausted,
    Failed,
    FeeQuote,
    RetryPolicy,
    RetryState,
    SubmissionOutcome,
    SubmitFn,
)
from mintbot.metrics import MetricsCollector, get_metrics_collector

logger = structlog.get_logger(__name__)


def next_backoff(current_ms: int, multiplier: Union[Decimal, float, str]) -> int:
    """ceil(current_ms * multiplier), computed exactly."""
    product = Decimal(current_ms) * Decimal(str(multiplier))
    return int(product.to_integral_value(rounding=ROUND_CEILING))


def backoff_schedule(initial_ms: int, multiplier: Union[Decimal, float, str]) -> Iterator[int]:
    """Yield successive backoff delays, rounding up at every step."""
    current = initial_ms
    while True:
        yield current
        current = next_backoff(current, multiplier)


@dataclass(frozen=True)
class AttemptPlan:
    number: int
    fee: FeeQuote
    backoff_ms: Optional[int]


def plan_attempts(policy: RetryPolicy, start_fee: FeeQuote) -> List[AttemptPlan]:
    """Fee and following backoff for every attempt if all of them fail."""
    plans = []
    fee = start_fee
    delays = backoff_schedule(policy.initial_backoff_ms, policy.backoff_multiplier)
    for number in range(1, policy.max_attempts + 1):
        last = number == policy.max_attempts
        plans.append(AttemptPlan(number, fee, None if last else next(delays)))
        if not last:
            fee = bump_fee(fee, policy.bump_percent)
    return plans


def classify_failure(exc: BaseException) -> str:
    """Return a failure category for logging/metrics."""
    if isinstance(exc, TransactionReverted):
        return "reverted"

    inner = exc.cause if isinstance(exc, SubmissionError) and exc.cause is not None else exc

    if isinstance(inner, TimeExhausted):
        return "timeout"
    if isinstance(inner, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return "network"
    if isinstance(inner, ContractLogicError):
        return "reverted"

    msg = str(inner).lower()
    if "underpriced" in msg or "fee too low" in msg or "replacement" in msg:
        return "underpriced"
    if "nonce" in msg:
        return "nonce"
    if "insufficient funds" in msg:
        return "insufficient_funds"
    return "rejected"


def _should_retry(result: AttemptResult) -> bool:
    return isinstance(result, Failed) and result.retryable


class RetryEngine:
    """Submit, await confirmation and, on failure, escalate fees and back off.

    ``run`` drives tenacity's ``Retrying`` over explicit attempt results:
    a ``Failed`` result is retried until ``max_attempts`` submissions have been
    made; the fee is bumped and the backoff grown between attempts.

    Usage:
        engine = RetryEngine(RetryPolicy(), FeeQuoteResolver())
        outcome = engine.run(lambda fee: client.submit(options.with_fee(fee)), fee_source)
    """

    def __init__(
        self,
        policy: RetryPolicy,
        resolver: Optional[FeeQuoteResolver] = None,
        sleep: Callable[[float], Any] = time.sleep,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        if policy.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if policy.initial_backoff_ms <= 0:
            raise ValueError("initial_backoff_ms must be > 0")
        self.policy = policy
        self.resolver = resolver or FeeQuoteResolver()
        self._sleep = sleep
        self._metrics = metrics or get_metrics_collector()

    def run(self, submit_fn: SubmitFn, fee_source: Any = None) -> SubmissionOutcome:
        state = RetryState(
            attempt=0,
            current_fee=self.resolver.resolve(fee_source),
            next_backoff_ms=self.policy.initial_backoff_ms,
        )
        self._metrics.record_fee(state.current_fee)
        logger.info(
            "submission_started",
            fee=state.current_fee.describe(),
            max_attempts=self.policy.max_attempts,
        )

        retrying = Retrying(
            retry=retry_if_result(_should_retry),
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=lambda rs: state.next_backoff_ms / 1000,
            sleep=self._sleep,
            before_sleep=lambda rs: self._escalate(state),
            retry_error_callback=lambda rs: self._exhausted(state),
            reraise=True,
        )
        result = retrying(self._attempt, state, submit_fn)

        if isinstance(result, Failed):
            logger.error("submission_not_retryable", attempt=state.attempt, error=str(result.error))
            return self._exhausted(state)
        return result

    def send(self, submit_fn: SubmitFn, fee_source: Any = None) -> Confirmed:
        """Like ``run`` but raise RetryExhaustedError instead of returning Exhausted."""
        outcome = self.run(submit_fn, fee_source)
        if isinstance(outcome, Exhausted):
            raise RetryExhaustedError(outcome.attempts, outcome.last_error) from outcome.last_error
        return outcome

    def _attempt(self, state: RetryState, submit_fn: SubmitFn) -> AttemptResult:
        number = state.attempt + 1
        started = time.monotonic()
        try:
            handle = submit_fn(state.current_fee)
            logger.info(
                "transaction_sent",
                tx_hash=getattr(handle, "tx_hash", None),
                attempt=number,
                fee=state.current_fee.describe(),
            )
            receipt = handle.await_confirmation()
        except Exception as e:  # noqa: BLE001
            state.attempt = number
            state.last_error = e
            category = classify_failure(e)
            retryable = bool(getattr(e, "retryable", True))
            self._metrics.record_attempt("failed", category=category)
            logger.warning(
                "attempt_failed",
                attempt=number,
                error=str(e),
                category=category,
                retryable=retryable,
            )
            return Failed(error=e, retryable=retryable)

        self._metrics.record_attempt("confirmed", duration_seconds=time.monotonic() - started)
        logger.info(
            "transaction_confirmed",
            tx_hash=receipt.transaction_id,
            block_number=receipt.block_number,
            attempt=number,
        )
        return Confirmed.from_receipt(receipt)

    def _escalate(self, state: RetryState) -> None:
        state.current_fee = bump_fee(state.current_fee, self.policy.bump_percent)
        self._metrics.record_fee_bump(state.current_fee)
        logger.info(
            "retry_scheduled",
            attempt=state.attempt + 1,
            backoff_ms=state.next_backoff_ms,
            fee=state.current_fee.describe(),
        )
        # tenacity has already taken this attempt's delay from the wait callback.
        state.next_backoff_ms = next_backoff(state.next_backoff_ms, self.policy.backoff_multiplier)

    @staticmethod
    def _exhausted(state: RetryState) -> Exhausted:
        logger.error(
            "submission_exhausted",
            attempts=state.attempt,
            error=str(state.last_error),
        )
        return Exhausted(last_error=state.last_error, attempts=state.attempt)
