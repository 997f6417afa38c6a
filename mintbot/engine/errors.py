from typing import Optional


class MintBotError(Exception):
    """Base class for errors raised by mintbot."""


class ConfigurationError(MintBotError):
    """Required settings are missing or malformed; raised before any submission."""


class SubmissionError(MintBotError):
    """The network rejected or failed to confirm a transaction on one attempt."""

    retryable = True

    def __init__(
        self,
        message: str = "Submission failed",
        *,
        cause: Optional[BaseException] = None,
        tx_hash: Optional[str] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.cause = cause
        self.tx_hash = tx_hash
        if retryable is not None:
            self.retryable = retryable


class TransactionReverted(SubmissionError):
    """The transaction was mined but reverted. It is already included, so it is never resubmitted."""

    retryable = False


class RetryExhaustedError(MintBotError):
    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        super().__init__(f"All {attempts} attempt(s) failed; last error: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class UnitError(MintBotError):
    def __init__(self, index: int, address: Optional[str], cause: BaseException):
        who = address or f"unit #{index}"
        super().__init__(f"{who}: {cause}")
        self.index = index
        self.address = address
        self.cause = cause
