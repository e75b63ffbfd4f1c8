"""
Uniswap V3 Price Encoding

Перевод человеческой цены пары токенов в sqrtPriceX96 для pool.initialize().

Основные формулы:
- pool price = token1 / token0 (в base units, т.е. с учётом decimals)
- raw_ratio = human_ratio * 10^(decimals1 - decimals0)
- sqrtPriceX96 = floor(sqrt(raw_ratio) * 2^96)

Порядок токенов в пуле всегда канонический: token0 - адрес меньше
(сравнение строк без учёта регистра). Если пользователь задал цену
в обратном порядке ("1 pETH = 4000 pUSDC", а token0 = pUSDC),
цена инвертируется.

Все вычисления идут через Decimal в локальном контексте, без float:
float даёт ошибки на порядки для пар 18/6 decimals.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from fractions import Fraction
from typing import Tuple, Union

from ..exceptions import InvalidRatio, MissingTokenMetadata

logger = logging.getLogger(__name__)

# Константы протокола
Q96 = 2 ** 96
Q192 = 2 ** 192
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Значащих цифр для Decimal (sqrtPriceX96 до 49 цифр)
PRECISION = 80

RatioLike = Union[int, float, str, Decimal, Fraction]


@dataclass(frozen=True)
class TokenDescriptor:
    """Токен: адрес + decimals."""
    address: str
    decimals: int
    symbol: str = ""

    @property
    def sort_key(self) -> str:
        """Ключ канонической сортировки (адрес в lowercase)."""
        return self.address.lower()

    def __str__(self):
        return self.symbol or self.address


@dataclass(frozen=True)
class PriceRequest:
    """
    Запрос на инициализацию цены.

    1 input_token0 = human_ratio input_token1.
    Порядок input-токенов задаёт пользователь и может не совпадать с пулом.
    """
    input_token0: TokenDescriptor
    input_token1: TokenDescriptor
    human_ratio: RatioLike


@dataclass(frozen=True)
class EncodedPrice:
    """Результат кодирования цены."""
    sqrt_price_x96: int
    token0: TokenDescriptor
    token1: TokenDescriptor
    raw_ratio: Decimal
    inverted: bool

    def price(self) -> Decimal:
        """Обратное декодирование: sqrtPriceX96^2 / 2^192 (raw ratio token1/token0)."""
        with localcontext() as ctx:
            ctx.prec = PRECISION
            return Decimal(self.sqrt_price_x96) ** 2 / Decimal(Q192)


def sort_tokens(
    token_a: TokenDescriptor,
    token_b: TokenDescriptor
) -> Tuple[TokenDescriptor, TokenDescriptor]:
    """
    Каноническая сортировка токенов пула.

    Единственное место в коде, где определяется порядок token0/token1.

    Returns:
        (token0, token1)

    Raises:
        MissingTokenMetadata: если у токена нет адреса
        ValueError: если адреса совпадают
    """
    for token in (token_a, token_b):
        if not token.address:
            raise MissingTokenMetadata("Token address is required")

    if token_a.sort_key == token_b.sort_key:
        raise ValueError(f"Pool tokens must differ, got {token_a.address} twice")

    if token_a.sort_key < token_b.sort_key:
        return token_a, token_b
    return token_b, token_a


def to_decimal_ratio(value: RatioLike) -> Decimal:
    """
    Приведение цены к Decimal с проверкой.

    float сначала переводится в str, чтобы 0.1 означало ровно одну десятую.

    Raises:
        InvalidRatio: 0, отрицательное, NaN, Infinity или не число
    """
    if value is None or isinstance(value, bool):
        raise InvalidRatio(f"Price ratio must be a positive number, got {value!r}")

    try:
        if isinstance(value, Decimal):
            ratio = value
        elif isinstance(value, Fraction):
            with localcontext() as ctx:
                ctx.prec = PRECISION
                ratio = Decimal(value.numerator) / Decimal(value.denominator)
        elif isinstance(value, float):
            ratio = Decimal(str(value))
        elif isinstance(value, int):
            ratio = Decimal(value)
        elif isinstance(value, str):
            ratio = Decimal(value.strip())
        else:
            raise InvalidRatio(f"Unsupported price ratio type: {type(value).__name__}")
    except InvalidOperation:
        raise InvalidRatio(f"Price ratio is not a number: {value!r}")

    if not ratio.is_finite():
        raise InvalidRatio(f"Price ratio must be finite, got {value!r}")
    if ratio <= 0:
        raise InvalidRatio(f"Price ratio must be positive, got {value!r}")

    return ratio


def _check_decimals(token: TokenDescriptor) -> int:
    decimals = token.decimals
    if decimals is None or isinstance(decimals, bool) or not isinstance(decimals, int):
        raise MissingTokenMetadata(f"Decimals unavailable for token {token.address}")
    if decimals < 0:
        raise MissingTokenMetadata(f"Invalid decimals {decimals} for token {token.address}")
    return decimals


def encode_sqrt_price_x96(raw_ratio: RatioLike) -> int:
    """
    sqrtPriceX96 = floor(sqrt(raw_ratio) * 2^96).

    Args:
        raw_ratio: Цена token1/token0 в base units (уже с учётом decimals)

    Returns:
        sqrtPriceX96 (целое, усечение к нулю)

    Raises:
        InvalidRatio: некорректная цена или результат вне
                      [MIN_SQRT_RATIO, MAX_SQRT_RATIO)
    """
    ratio = to_decimal_ratio(raw_ratio)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        # int() отбрасывает дробную часть, как encodePriceSqrt в протоколе
        sqrt_price_x96 = int(ratio.sqrt() * Q96)

    if not MIN_SQRT_RATIO <= sqrt_price_x96 < MAX_SQRT_RATIO:
        raise InvalidRatio(
            f"sqrtPriceX96 {sqrt_price_x96} for ratio {ratio} is outside "
            f"[{MIN_SQRT_RATIO}, {MAX_SQRT_RATIO})"
        )

    return sqrt_price_x96


def encode(
    input_token0: TokenDescriptor,
    input_token1: TokenDescriptor,
    human_ratio: RatioLike
) -> EncodedPrice:
    """
    Кодирование человеческой цены в sqrtPriceX96.

    Args:
        input_token0: Первый токен в порядке пользователя
        input_token1: Второй токен в порядке пользователя
        human_ratio: 1 input_token0 = human_ratio input_token1

    Returns:
        EncodedPrice со значением для pool.initialize()

    Example:
        # pUSDC (6 decimals) < pETH (18 decimals) по адресу
        # "1 pETH = 4000 pUSDC" -> pool price pETH/pUSDC = 1/4000
        encoded = encode(peth, pusdc, 4000)
        pool.functions.initialize(encoded.sqrt_price_x96)
    """
    decimals_in0 = _check_decimals(input_token0)
    decimals_in1 = _check_decimals(input_token1)
    ratio = to_decimal_ratio(human_ratio)

    token0, token1 = sort_tokens(input_token0, input_token1)
    inverted = token0.sort_key != input_token0.sort_key
    decimals0, decimals1 = (decimals_in1, decimals_in0) if inverted else (decimals_in0, decimals_in1)

    with localcontext() as ctx:
        ctx.prec = PRECISION
        canonical_ratio = Decimal(1) / ratio if inverted else ratio
        raw_ratio = canonical_ratio * Decimal(10) ** (decimals1 - decimals0)

    sqrt_price_x96 = encode_sqrt_price_x96(raw_ratio)

    logger.debug(
        f"Encoded 1 {input_token0} = {ratio} {input_token1}: "
        f"token0={token0.address}, token1={token1.address}, inverted={inverted}, "
        f"raw_ratio={raw_ratio}, sqrtPriceX96={sqrt_price_x96}"
    )

    return EncodedPrice(
        sqrt_price_x96=sqrt_price_x96,
        token0=token0,
        token1=token1,
        raw_ratio=raw_ratio,
        inverted=inverted
    )


def encode_request(request: PriceRequest) -> EncodedPrice:
    """encode() для готового PriceRequest."""
    return encode(request.input_token0, request.input_token1, request.human_ratio)


def sqrt_price_x96_to_price(
    sqrt_price_x96: int,
    decimals0: int = 0,
    decimals1: int = 0,
    invert: bool = False
) -> Decimal:
    """
    Конвертация sqrtPriceX96 в человеческую цену.

    Args:
        sqrt_price_x96: sqrtPriceX96 из slot0
        decimals0: Decimals token0
        decimals1: Decimals token1
        invert: True = цена token0 в единицах token1 заменяется обратной
                (сколько token0 за 1 token1)

    Returns:
        Цена token1 за 1 token0 (или обратная при invert=True)
    """
    if sqrt_price_x96 <= 0:
        raise InvalidRatio(f"sqrtPriceX96 must be positive, got {sqrt_price_x96}")

    with localcontext() as ctx:
        ctx.prec = PRECISION
        raw = Decimal(sqrt_price_x96) ** 2 / Decimal(Q192)
        price = raw * Decimal(10) ** (decimals0 - decimals1)
        if invert:
            return Decimal(1) / price
        return price
