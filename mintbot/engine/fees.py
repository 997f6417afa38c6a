"""Starting fee resolution and percentage fee escalation."""

from typing import Any, Optional

import structlog

from mintbot.engine.models import EIP1559Fee, FeeData, FeeOverrides, FeeQuote, LegacyFee

logger = structlog.get_logger(__name__)

FALLBACK_GAS_PRICE_WEI = 20 * 10**9


def _scale(value: int, percent: int) -> int:
    scaled = value * (100 + percent) // 100
    # Floor division leaves tiny values unchanged; they still have to move.
    if percent > 0 and scaled <= value:
        scaled = value + 1
    return scaled


def bump_fee(quote: FeeQuote, percent: int) -> FeeQuote:
    """Return the next quote, each field raised by ``percent`` (integer floor).

    The quote keeps its fee model. For ``percent > 0`` a field so small that
    ``v * (100 + percent) // 100 == v`` becomes ``v + 1`` instead, so the result
    differs from the plain floor formula there (7 wei at 5% gives 8, not 7).
    """
    if percent < 0:
        raise ValueError(f"bump percent must be >= 0, got {percent}")

    if isinstance(quote, LegacyFee):
        return LegacyFee(gas_price=_scale(quote.gas_price, percent))
    if isinstance(quote, EIP1559Fee):
        return EIP1559Fee(
            max_fee_per_gas=_scale(quote.max_fee_per_gas, percent),
            max_priority_fee_per_gas=_scale(quote.max_priority_fee_per_gas, percent),
        )
    raise TypeError(f"Unsupported fee quote: {quote!r}")


class FeeQuoteResolver:
    """Decides the starting fee quote of a submission.

    Precedence: both EIP-1559 overrides, then the legacy gas price override,
    then one query of the network fee source, then a 20 gwei legacy fallback.
    Resolution never raises.
    """

    def __init__(self, overrides: Optional[FeeOverrides] = None):
        self.overrides = overrides or FeeOverrides()

    def resolve(self, fee_source: Any) -> FeeQuote:
        o = self.overrides
        if o.max_fee_per_gas and o.max_priority_fee_per_gas:
            quote: FeeQuote = EIP1559Fee(o.max_fee_per_gas, o.max_priority_fee_per_gas)
            logger.info("fee_quote_resolved", source="override", fee=quote.describe())
            return quote

        if o.gas_price:
            quote = LegacyFee(o.gas_price)
            logger.info("fee_quote_resolved", source="override", fee=quote.describe())
            return quote

        data = self._query(fee_source)
        if data.max_fee_per_gas and data.max_priority_fee_per_gas:
            quote = EIP1559Fee(data.max_fee_per_gas, data.max_priority_fee_per_gas)
            logger.info("fee_quote_resolved", source="network", fee=quote.describe())
            return quote

        if data.gas_price:
            quote = LegacyFee(data.gas_price)
            logger.info("fee_quote_resolved", source="network", fee=quote.describe())
            return quote

        quote = LegacyFee(FALLBACK_GAS_PRICE_WEI)
        logger.warning("fee_quote_fallback", fee=quote.describe())
        return quote

    @staticmethod
    def _query(fee_source: Any) -> FeeData:
        if fee_source is None:
            return FeeData()
        try:
            return fee_source.get_fee_data()
        except Exception as e:  # noqa: BLE001
            logger.warning("fee_data_query_failed", error=str(e))
            return FeeData()
