from unittest.mock import MagicMock

import pytest

from mintbot.engine.batch import SubmissionBatchRunner
from mintbot.engine.errors import (
    ConfigurationError,
    RetryExhaustedError,
    SubmissionError,
    UnitError,
)
from mintbot.engine.fees import FeeQuoteResolver
from mintbot.engine.models import (
    CallOptions,
    Confirmed,
    Failed,
    FeeOverrides,
    Receipt,
    RetryPolicy,
    SigningUnit,
    SubmissionRequest,
)
from mintbot.engine.retry import RetryEngine


class FakeHandle:
    def __init__(self, receipt):
        self.tx_hash = receipt.transaction_id
        self._receipt = receipt

    def await_confirmation(self):
        return self._receipt


class FakeClient:
    def __init__(self, address, fail=False):
        self.address = address
        self.fail = fail
        self.requests = []

    def submit(self, request):
        self.requests.append(request)
        if self.fail:
            raise SubmissionError("execution reverted: sold out")
        return FakeHandle(Receipt(f"0xtx-{self.address}", 42))


class FakeFactory:
    def __init__(self, failing=(), broken=()):
        self.failing = set(failing)
        self.broken = set(broken)
        self.clients = {}

    def __call__(self, unit):
        if unit.index in self.broken:
            raise ConfigurationError(f"{unit.label}: invalid private key")
        client = FakeClient(f"0xaddr{unit.index}", fail=unit.index in self.failing)
        self.clients[unit.index] = client
        return client


def make_runner(factory, sleeps, max_attempts=2):
    engine = RetryEngine(
        RetryPolicy(max_attempts=max_attempts, initial_backoff_ms=100),
        FeeQuoteResolver(FeeOverrides(gas_price=10**9)),
        sleep=sleeps.append,
        metrics=MagicMock(),
    )
    return SubmissionBatchRunner(
        engine,
        factory,
        fee_source=None,
        call_options=CallOptions(quantity=2, value_wei=2 * 10**16, gas_limit=150_000),
        sleep=sleeps.append,
        metrics=MagicMock(),
    )


def units(n):
    return [SigningUnit(index=i, private_key=f"key{i}") for i in range(n)]


def test_failed_unit_is_isolated():
    sleeps = []
    factory = FakeFactory(failing={1})
    runner = make_runner(factory, sleeps)

    results = runner.run_batch(units(3), inter_unit_delay_ms=2000)

    assert [r.ok for r in results] == [True, False, True]
    assert [r.index for r in results] == [0, 1, 2]
    assert isinstance(results[0].result, Confirmed)
    assert isinstance(results[1].result, Failed)
    assert isinstance(results[1].error, UnitError)
    assert isinstance(results[1].error.cause, RetryExhaustedError)
    assert results[1].address == "0xaddr1"
    # Unit 2: two attempts with one 0.1s backoff between them.
    assert len(factory.clients[1].requests) == 2
    # Inter-unit delay between units only, plus the failing unit's backoff.
    assert sleeps == [2.0, 0.1, 2.0]


def test_delay_runs_between_units_only():
    sleeps = []
    runner = make_runner(FakeFactory(failing={1}), sleeps, max_attempts=1)

    results = runner.run_batch(iter(units(3)), inter_unit_delay_ms=2000)

    assert [r.ok for r in results] == [True, False, True]
    assert sleeps == [2.0, 2.0]


def test_single_unit_batch_does_not_sleep():
    sleeps = []
    runner = make_runner(FakeFactory(), sleeps)

    runner.run_batch(units(1), inter_unit_delay_ms=2000)

    assert sleeps == []


def test_unit_that_cannot_be_built_is_recorded():
    sleeps = []
    runner = make_runner(FakeFactory(broken={0}), sleeps)

    results = runner.run_batch(units(2), inter_unit_delay_ms=0)

    assert [r.ok for r in results] == [False, True]
    assert results[0].address is None
    assert isinstance(results[0].error.cause, ConfigurationError)
    assert sleeps == []


def test_requests_merge_call_options_and_fee():
    factory = FakeFactory()
    runner = make_runner(factory, [])

    runner.run_batch(units(1))

    request = factory.clients[0].requests[0]
    assert isinstance(request, SubmissionRequest)
    assert request.tx_params() == {"value": 2 * 10**16, "gas": 150_000, "gasPrice": 10**9}
    assert request.quantity == 2


def test_run_single_returns_confirmation():
    runner = make_runner(FakeFactory(), [])

    confirmed = runner.run_single(units(1)[0])

    assert confirmed == Confirmed("0xtx-0xaddr0", 42)


def test_run_single_propagates_exhaustion():
    runner = make_runner(FakeFactory(failing={0}), [], max_attempts=3)

    with pytest.raises(RetryExhaustedError) as info:
        runner.run_single(units(1)[0])

    assert info.value.attempts == 3


def test_empty_batch():
    assert make_runner(FakeFactory(), []).run_batch([], inter_unit_delay_ms=500) == []
