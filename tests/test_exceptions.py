"""
Tests for pushswap.exceptions.
"""

import pytest

from pushswap.exceptions import (
    DegenerateTickWindow,
    InvalidRatio,
    MissingTokenMetadata,
    PricingError,
    TransactionFailed,
    UnknownFeeTier,
)


class TestHierarchy:
    """Ошибки расчётов - ValueError, ошибки транзакций - RuntimeError."""

    @pytest.mark.parametrize("exc", [
        InvalidRatio("bad"),
        UnknownFeeTier(9999),
        DegenerateTickWindow(60, 60),
        MissingTokenMetadata("no decimals"),
    ])
    def test_pricing_errors(self, exc):
        assert isinstance(exc, PricingError)
        assert isinstance(exc, ValueError)

    def test_transaction_failed_is_not_pricing_error(self):
        exc = TransactionFailed("mint", "0xdead")
        assert isinstance(exc, RuntimeError)
        assert not isinstance(exc, ValueError)


class TestMessages:

    def test_unknown_fee_tier(self):
        exc = UnknownFeeTier(9999, [500, 3000, 10000])
        assert str(exc) == "Unknown fee tier: 9999. Valid fee tiers are: [500, 3000, 10000]"

    def test_degenerate_window(self):
        exc = DegenerateTickWindow(887200, 887200)
        assert str(exc) == "Degenerate tick window: [887200, 887200]"
        assert (exc.tick_lower, exc.tick_upper) == (887200, 887200)

    def test_transaction_failed(self):
        exc = TransactionFailed("initialize_pool", "0xdead")
        assert str(exc) == "initialize_pool transaction reverted! TX: 0xdead"
        assert exc.action == "initialize_pool"
