"""mintbot: submit a payable contract call with fee escalation and retries."""

__version__ = "1.0.0"
