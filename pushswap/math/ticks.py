"""
Uniswap V3 Tick Mathematics

Основные формулы:
- price(i) = 1.0001^i
- tick_lower = floor((current_tick - range) / spacing) * spacing
- tick_upper = ceil((current_tick + range) / spacing) * spacing

Tick spacing по fee tier (фиксировано в factory протокола):
- 0.05% (500) -> spacing 10
- 0.30% (3000) -> spacing 60
- 1.00% (10000) -> spacing 200

Любой другой fee - ошибка, а не spacing по умолчанию.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, localcontext
from enum import IntEnum

from ..exceptions import DegenerateTickWindow, InvalidRatio, UnknownFeeTier

logger = logging.getLogger(__name__)

# Константы
MIN_TICK = -887272
MAX_TICK = 887272
TICK_BASE = Decimal("1.0001")

# Полуширина диапазона по умолчанию (было ±1200, сужено до ±120)
DEFAULT_RANGE_HALF_WIDTH = 120


class FeeTier(IntEnum):
    """Fee tiers фабрики (в сотых долях базисного пункта)."""
    LOW = 500       # 0.05%
    MEDIUM = 3000   # 0.30%
    HIGH = 10000    # 1.00%


# Fee tier -> tick spacing
FEE_TO_TICK_SPACING = {
    FeeTier.LOW: 10,
    FeeTier.MEDIUM: 60,
    FeeTier.HIGH: 200,
}


@dataclass(frozen=True)
class TickWindow:
    """Диапазон тиков позиции, оба края кратны tick_spacing."""
    tick_lower: int
    tick_upper: int

    @property
    def width(self) -> int:
        return self.tick_upper - self.tick_lower

    def contains(self, tick: int) -> bool:
        """Тик внутри диапазона (как в пуле: lower <= tick < upper)."""
        return self.tick_lower <= tick < self.tick_upper


def get_tick_spacing(fee: int) -> int:
    """
    Получение tick_spacing по fee tier.

    Args:
        fee: Fee tier (500, 3000, 10000)

    Returns:
        tick_spacing

    Raises:
        UnknownFeeTier: fee не входит в FEE_TO_TICK_SPACING
    """
    if isinstance(fee, bool) or fee not in FEE_TO_TICK_SPACING:
        raise UnknownFeeTier(fee, sorted(int(f) for f in FEE_TO_TICK_SPACING))
    return FEE_TO_TICK_SPACING[fee]


def align_tick_to_spacing(tick: int, tick_spacing: int, round_down: bool = True) -> int:
    """
    Выравнивание тика к tick_spacing.

    Args:
        tick: Исходный тик
        tick_spacing: Шаг тиков
        round_down: True = вниз (к -inf), False = вверх (к +inf)

    Returns:
        Выровненный тик
    """
    if tick_spacing <= 0:
        raise ValueError(f"tick_spacing must be positive, got {tick_spacing}")

    if tick % tick_spacing == 0:
        return tick

    # Floor division works for negative ticks too
    if round_down:
        return (tick // tick_spacing) * tick_spacing
    return (tick // tick_spacing + 1) * tick_spacing


def usable_tick_bounds(tick_spacing: int) -> tuple[int, int]:
    """Крайние тики сетки внутри [MIN_TICK, MAX_TICK]."""
    return (
        align_tick_to_spacing(MIN_TICK, tick_spacing, round_down=False),
        align_tick_to_spacing(MAX_TICK, tick_spacing, round_down=True),
    )


def _require_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


def plan(fee: int, current_tick: int, range_half_width: int) -> TickWindow:
    """
    Диапазон тиков вокруг текущего тика пула.

    Оба края округляются наружу к сетке spacing, поэтому диапазон всегда
    содержит [current_tick - range_half_width, current_tick + range_half_width].
    Затем края ограничиваются [MIN_TICK, MAX_TICK] (по сетке).

    Args:
        fee: Fee tier пула (читать из пула прямо перед вызовом)
        current_tick: Текущий тик из slot0
        range_half_width: Полуширина диапазона в тиках.
            Широкая - для волатильных / новых пулов,
            узкая - для стабильных пар.

    Returns:
        TickWindow

    Raises:
        UnknownFeeTier: неизвестный fee
        DegenerateTickWindow: tick_lower >= tick_upper. При range_half_width
            меньше tick_spacing так бывает у краёв: тик за последним тиком
            сетки (выше floor(MAX_TICK / spacing) * spacing или ниже
            ceil(MIN_TICK / spacing) * spacing) схлопывает окно после
            ограничения. Другой край не сдвигается.
        ValueError: некорректные аргументы

    Example:
        plan(3000, 46054, 120)  # TickWindow(tick_lower=45900, tick_upper=46200)
    """
    tick_spacing = get_tick_spacing(fee)
    _require_int("current_tick", current_tick)
    _require_int("range_half_width", range_half_width)

    if not MIN_TICK <= current_tick <= MAX_TICK:
        raise ValueError(f"current_tick {current_tick} is outside [{MIN_TICK}, {MAX_TICK}]")
    if range_half_width < 0:
        raise ValueError(f"range_half_width must be >= 0, got {range_half_width}")

    tick_lower = align_tick_to_spacing(current_tick - range_half_width, tick_spacing, round_down=True)
    tick_upper = align_tick_to_spacing(current_tick + range_half_width, tick_spacing, round_down=False)

    min_usable, max_usable = usable_tick_bounds(tick_spacing)
    tick_lower = max(tick_lower, min_usable)
    tick_upper = min(tick_upper, max_usable)

    if tick_lower >= tick_upper:
        raise DegenerateTickWindow(tick_lower, tick_upper)

    logger.debug(
        f"Planned ticks [{tick_lower}, {tick_upper}] for fee={int(fee)}, "
        f"current_tick={current_tick}, range=±{range_half_width}"
    )
    return TickWindow(tick_lower=tick_lower, tick_upper=tick_upper)


def full_range(fee: int) -> TickWindow:
    """Полный диапазон (покрывает все цены) для fee tier."""
    tick_lower, tick_upper = usable_tick_bounds(get_tick_spacing(fee))
    return TickWindow(tick_lower=tick_lower, tick_upper=tick_upper)


def tick_to_price(tick: int) -> Decimal:
    """
    Конвертация тика в raw цену token1/token0.

    price(i) = 1.0001^i
    """
    with localcontext() as ctx:
        ctx.prec = 50
        return TICK_BASE ** tick


def price_to_tick(price) -> int:
    """
    Конвертация raw цены token1/token0 в тик (floor).

    i = floor(ln(price) / ln(1.0001)), с ограничением [MIN_TICK, MAX_TICK]
    """
    with localcontext() as ctx:
        ctx.prec = 50
        value = Decimal(str(price)) if isinstance(price, float) else Decimal(price)
        if not value.is_finite() or value <= 0:
            raise InvalidRatio(f"Price must be positive, got {price!r}")
        exact = value.ln() / TICK_BASE.ln()
        tick = int(exact.to_integral_value(rounding=ROUND_FLOOR))

    return max(MIN_TICK, min(MAX_TICK, tick))
