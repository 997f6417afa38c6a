import time
from typing import Any, Callable, Iterable, List, Optional

import structlog

from mintbot.engine.errors import RetryExhaustedError, UnitError
from mintbot.engine.models import (
    CallOptions,
    Confirmed,
    Exhausted,
    Failed,
    SigningUnit,
    SubmissionOutcome,
    UnitResult,
)
from mintbot.engine.retry import RetryEngine
from mintbot.metrics import MetricsCollector, get_metrics_collector

logger = structlog.get_logger(__name__)


class SubmissionBatchRunner:
    """
    Runs the RetryEngine once per signing unit, strictly one unit after another.

    ``client_factory(unit)`` returns the unit's submission client: an object with
    an ``address`` and ``submit(request) -> pending handle``. Each attempt's request
    is built from ``call_options`` and the engine's current fee quote.
    """

    def __init__(
        self,
        engine: RetryEngine,
        client_factory: Callable[[SigningUnit], Any],
        fee_source: Any,
        call_options: CallOptions,
        sleep: Callable[[float], Any] = time.sleep,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.engine = engine
        self.client_factory = client_factory
        self.fee_source = fee_source
        self.call_options = call_options
        self._sleep = sleep
        self._metrics = metrics or get_metrics_collector()

    def run_single(self, unit: SigningUnit) -> Confirmed:
        """Run one unit; exhaustion propagates as RetryExhaustedError."""
        client = self.client_factory(unit)
        log = logger.bind(unit=unit.index, address=client.address)
        outcome = self._run_with_client(client)
        if isinstance(outcome, Exhausted):
            self._metrics.record_unit("failed")
            log.error("unit_failed", attempts=outcome.attempts, error=str(outcome.last_error))
            raise RetryExhaustedError(outcome.attempts, outcome.last_error) from outcome.last_error
        self._metrics.record_unit("confirmed")
        log.info("unit_confirmed", tx_hash=outcome.transaction_id, block_number=outcome.block_number)
        return outcome

    def run_batch(self, units: Iterable[SigningUnit], inter_unit_delay_ms: int = 0) -> List[UnitResult]:
        """Run every unit in order; a failing unit never stops the ones after it."""
        units = list(units)
        results: List[UnitResult] = []
        for position, unit in enumerate(units):
            address: Optional[str] = None
            log = logger.bind(unit=unit.index)
            try:
                client = self.client_factory(unit)
                address = client.address
                log = log.bind(address=address)
                log.info("unit_started")
                outcome = self._run_with_client(client)
                if isinstance(outcome, Exhausted):
                    raise RetryExhaustedError(outcome.attempts, outcome.last_error)
                results.append(UnitResult(unit.index, address, outcome))
                self._metrics.record_unit("confirmed")
                log.info("unit_confirmed", tx_hash=outcome.transaction_id, block_number=outcome.block_number)
            except Exception as e:  # noqa: BLE001
                error = UnitError(unit.index, address, e)
                results.append(UnitResult(unit.index, address, Failed(error=error, retryable=False)))
                self._metrics.record_unit("failed")
                log.error("unit_failed", error=str(e), error_type=type(e).__name__)

            if inter_unit_delay_ms > 0 and position < len(units) - 1:
                self._sleep(inter_unit_delay_ms / 1000)

        failed = sum(1 for r in results if not r.ok)
        logger.info("batch_completed", units=len(results), confirmed=len(results) - failed, failed=failed)
        return results

    def _run_with_client(self, client: Any) -> SubmissionOutcome:
        def submit(fee):
            return client.submit(self.call_options.with_fee(fee))

        return self.engine.run(submit, self.fee_source)
