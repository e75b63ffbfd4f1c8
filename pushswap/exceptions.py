"""
Исключения для расчёта цены и диапазонов тиков.

Все ошибки расчётов наследуются от ValueError, поэтому код,
который уже ловит ValueError, продолжает работать.
"""


class PricingError(ValueError):
    """Базовая ошибка расчёта цены / тиков."""
    pass


class InvalidRatio(PricingError):
    """Цена <= 0, бесконечность, NaN или не число."""
    pass


class UnknownFeeTier(PricingError):
    """Fee tier не входит в список поддерживаемых."""

    def __init__(self, fee, valid_fees=None):
        self.fee = fee
        self.valid_fees = list(valid_fees or [])
        super().__init__(f"Unknown fee tier: {fee}. Valid fee tiers are: {self.valid_fees}")


class DegenerateTickWindow(PricingError):
    """tick_lower >= tick_upper после выравнивания и клампинга."""

    def __init__(self, tick_lower: int, tick_upper: int):
        self.tick_lower = tick_lower
        self.tick_upper = tick_upper
        super().__init__(f"Degenerate tick window: [{tick_lower}, {tick_upper}]")


class MissingTokenMetadata(PricingError):
    """Нет адреса или decimals токена."""
    pass


class TransactionFailed(RuntimeError):
    """Транзакция замайнена, но завершилась с status != 1."""

    def __init__(self, action: str, tx_hash: str):
        self.action = action
        self.tx_hash = tx_hash
        super().__init__(f"{action} transaction reverted! TX: {tx_hash}")
