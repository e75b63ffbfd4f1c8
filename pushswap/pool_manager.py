"""
Pool Manager

Оркестрация поверх контрактов:
- create_pool: цена -> sqrtPriceX96 -> createPool + initialize -> запись в реестр
- add_liquidity: свежий slot0 -> диапазон тиков -> approve -> mint
- add_full_range_liquidity: то же на полный диапазон
- swap: exactInputSingle через SwapRouter
- ensure_balance: проверка баланса, нехватка WPUSH добирается deposit нативного PUSH
- check_pool_health: ликвидность и положение тика

Вся математика в pushswap.math; здесь только последовательность вызовов.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, localcontext
from typing import Callable, List, Optional

from .contracts.pool_factory import PoolFactory, PoolState
from .contracts.position_manager import MintParams, MintResult, UniswapV3PositionManager
from .contracts.swap_router import SwapParams, UniswapV3SwapRouter
from .contracts.tokens import WrappedNative
from .math.price import RatioLike, TokenDescriptor, encode, sort_tokens, sqrt_price_x96_to_price
from .math.ticks import DEFAULT_RANGE_HALF_WIDTH, MAX_TICK, TickWindow, full_range, get_tick_spacing, plan
from .registry import AddressRegistry

logger = logging.getLogger(__name__)

POOLS_SECTION = "pools"


@dataclass
class CreatePoolResult:
    """Результат создания / инициализации пула."""
    pool_address: str
    token0: TokenDescriptor
    token1: TokenDescriptor
    fee: int
    sqrt_price_x96: int
    current_tick: int
    create_tx: Optional[str] = None
    init_tx: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.create_tx is not None

    @property
    def initialized_now(self) -> bool:
        return self.init_tx is not None


@dataclass
class AddLiquidityResult:
    """Результат добавления ликвидности."""
    pool_address: str
    window: TickWindow
    current_tick: int
    amount0_desired: int
    amount1_desired: int
    mint: MintResult


@dataclass
class SwapResult:
    """Результат обмена (amount_out - по разнице балансов)."""
    pool_address: str
    token_in: TokenDescriptor
    token_out: TokenDescriptor
    amount_in: int
    amount_out: int
    tx_hash: str


@dataclass
class PoolHealth:
    """Состояние здоровья пула."""
    pool_address: str
    current_tick: int
    liquidity: int
    tick_percent: float
    issues: List[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not self.issues


def to_base_units(amount, decimals: int) -> int:
    """
    Человеческая сумма -> base units через Decimal (усечение к нулю).

    Example:
        >>> to_base_units("1.5", 6)
        1500000
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Amount is not a number: {amount!r}")
    if not value.is_finite() or value < 0:
        raise ValueError(f"Amount must be a non-negative number, got {amount!r}")
    with localcontext() as ctx:
        ctx.prec = 80
        return int(value * (Decimal(10) ** decimals))


class PoolManager:
    """
    Создание пулов и добавление ликвидности.

    Пример использования:
    ```python
    manager = PoolManager(factory, position_manager, AddressRegistry("test-addresses.json"))

    # 1 pETH = 4000 pUSDC (порядок токенов любой)
    result = manager.create_pool(PETH, PUSDC, "4000", fee=3000)

    # 1 pETH + 4000 pUSDC в диапазоне ±120 тиков
    manager.add_liquidity(result.pool_address, PETH, "1", "4000", range_half_width=120)

    # 0.5 pETH -> pUSDC
    manager.swap(result.pool_address, PETH, "0.5")
    ```

    Если передан wpush, нехватка WPUSH перед mint / swap добирается
    обёрткой нативного PUSH; нехватка любого другого токена - ValueError.
    """

    def __init__(
        self,
        factory: PoolFactory,
        position_manager: UniswapV3PositionManager = None,
        registry: AddressRegistry = None,
        swap_router: UniswapV3SwapRouter = None,
        wpush: WrappedNative = None
    ):
        self.factory = factory
        self.position_manager = position_manager
        self.registry = registry
        self.swap_router = swap_router
        self.wpush = wpush

    # ----------------------------------------------------------
    # Create pool
    # ----------------------------------------------------------

    def create_pool(
        self,
        token_a: str,
        token_b: str,
        human_ratio: RatioLike,
        fee: int = 3000
    ) -> CreatePoolResult:
        """
        Создание и инициализация пула.

        Args:
            token_a: Адрес первого токена (в порядке пользователя)
            token_b: Адрес второго токена
            human_ratio: 1 token_a = human_ratio token_b
            fee: Fee tier

        Returns:
            CreatePoolResult

        Если пул уже есть и инициализирован - цена не меняется,
        возвращается текущее состояние.
        """
        # Всё, что может упасть на валидации, - до первой транзакции
        get_tick_spacing(fee)
        input0 = self.factory.get_token_descriptor(token_a)
        input1 = self.factory.get_token_descriptor(token_b)
        encoded = encode(input0, input1, human_ratio)

        logger.info(
            f"Creating pool {encoded.token0}/{encoded.token1} fee={fee}: "
            f"1 {input0} = {human_ratio} {input1}, sqrtPriceX96={encoded.sqrt_price_x96}"
            f"{' (inverted to pool order)' if encoded.inverted else ''}"
        )

        try:
            create_tx = None
            pool_address = self.factory.get_pool_address(input0.address, input1.address, fee)
            if pool_address is None:
                create_tx, pool_address = self.factory.create_pool(input0.address, input1.address, fee)
            else:
                logger.info(f"Pool already exists at {pool_address}")

            init_tx = None
            if self.factory.is_initialized(pool_address):
                logger.warning(f"Pool {pool_address} already initialized, price left unchanged")
            else:
                init_tx = self.factory.initialize_pool(pool_address, encoded.sqrt_price_x96)

            state = self.factory.get_pool_state(pool_address)
        except Exception as e:
            logger.error(f"Pool creation failed: {e}")
            raise

        if init_tx and state.sqrt_price_x96 != encoded.sqrt_price_x96:
            logger.warning(
                f"slot0 sqrtPriceX96 {state.sqrt_price_x96} differs from "
                f"encoded {encoded.sqrt_price_x96}"
            )

        result = CreatePoolResult(
            pool_address=pool_address,
            token0=encoded.token0,
            token1=encoded.token1,
            fee=int(fee),
            sqrt_price_x96=state.sqrt_price_x96,
            current_tick=state.tick,
            create_tx=create_tx,
            init_tx=init_tx
        )
        self._record_pool(result, input0, input1, human_ratio)
        return result

    def _record_pool(
        self,
        result: CreatePoolResult,
        input0: TokenDescriptor,
        input1: TokenDescriptor,
        human_ratio: RatioLike
    ):
        if self.registry is None:
            return

        symbol0, symbol1 = result.token0.symbol, result.token1.symbol
        entry = {
            "name": f"{symbol0}/{symbol1} Pool",
            "address": result.pool_address,
            "token0": result.token0.address,
            "token1": result.token1.address,
            "token0Symbol": symbol0,
            "token1Symbol": symbol1,
            "fee": result.fee,
            "feePercentage": f"{result.fee / 10000:.2f}%",
            "sqrtPriceX96": str(result.sqrt_price_x96),
            "currentTick": result.current_tick,
            "priceApplied": result.initialized_now,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        if result.initialized_now:
            entry["targetPricing"] = f"1 {input0} = {human_ratio} {input1}"
        else:
            # Пул уже был инициализирован: запрошенная цена не применялась
            price = sqrt_price_x96_to_price(
                result.sqrt_price_x96, result.token0.decimals, result.token1.decimals
            )
            entry["currentPricing"] = f"1 {result.token0} = {price:.6g} {result.token1}"
        self.registry.set(POOLS_SECTION, f"{symbol0}_{symbol1}_{result.fee}", entry)

    # ----------------------------------------------------------
    # Add liquidity
    # ----------------------------------------------------------

    def add_liquidity(
        self,
        pool_address: str,
        token_a: str,
        amount_a,
        amount_b,
        range_half_width: int = DEFAULT_RANGE_HALF_WIDTH
    ) -> AddLiquidityResult:
        """
        Добавление ликвидности вокруг текущего тика.

        Args:
            pool_address: Адрес пула
            token_a: Токен, к которому относится amount_a (второй токен пула - amount_b)
            amount_a: Сумма token_a в человеческих единицах
            amount_b: Сумма второго токена
            range_half_width: Полуширина диапазона в тиках

        Returns:
            AddLiquidityResult
        """
        return self._provide_liquidity(
            pool_address, token_a, amount_a, amount_b,
            lambda state: plan(state.fee, state.tick, range_half_width)
        )

    def add_full_range_liquidity(
        self,
        pool_address: str,
        token_a: str,
        amount_a,
        amount_b
    ) -> AddLiquidityResult:
        """Добавление ликвидности на полный диапазон цен."""
        return self._provide_liquidity(
            pool_address, token_a, amount_a, amount_b,
            lambda state: full_range(state.fee)
        )

    def _pool_tokens(self, state: PoolState, token: str):
        """(выбранный токен, второй токен пула) как TokenDescriptor."""
        pool_token0 = self.factory.get_token_descriptor(state.token0)
        pool_token1 = self.factory.get_token_descriptor(state.token1)

        if token.lower() == pool_token0.sort_key:
            return pool_token0, pool_token1
        if token.lower() == pool_token1.sort_key:
            return pool_token1, pool_token0
        raise ValueError(f"Token {token} is not in pool {state.address}")

    def _provide_liquidity(
        self,
        pool_address: str,
        token_a: str,
        amount_a,
        amount_b,
        window_fn: Callable[[PoolState], TickWindow]
    ) -> AddLiquidityResult:
        if self.position_manager is None:
            raise ValueError("Position manager not configured")

        # Свежее состояние прямо перед расчётом диапазона
        state = self.factory.get_pool_state(pool_address)
        if not state.initialized:
            raise ValueError(f"Pool {pool_address} is not initialized")

        input_a, input_b = self._pool_tokens(state, token_a)

        token0, token1 = sort_tokens(input_a, input_b)
        if token0 is input_a:
            human0, human1 = amount_a, amount_b
        else:
            human0, human1 = amount_b, amount_a

        amount0 = to_base_units(human0, token0.decimals)
        amount1 = to_base_units(human1, token1.decimals)
        if amount0 == 0 and amount1 == 0:
            raise ValueError("At least one amount must be positive")

        window = window_fn(state)
        price = sqrt_price_x96_to_price(state.sqrt_price_x96, token0.decimals, token1.decimals)
        logger.info(
            f"Adding liquidity to {state.address}: tick={state.tick} "
            f"(1 {token0} = {price:.6g} {token1}), range [{window.tick_lower}, {window.tick_upper}], "
            f"amounts {human0} {token0} / {human1} {token1}"
        )

        try:
            owner = self._owner(self.position_manager)
            self.ensure_balance(token0, amount0, owner)
            self.ensure_balance(token1, amount1, owner)

            if amount0 > 0:
                self.position_manager.check_and_approve(token0.address, amount0)
            if amount1 > 0:
                self.position_manager.check_and_approve(token1.address, amount1)

            params = MintParams.from_window(
                token0.address, token1.address, state.fee, window, amount0, amount1
            )
            mint_result = self.position_manager.mint(params)
        except Exception as e:
            logger.error(f"Liquidity addition failed: {e}")
            raise

        logger.info(f"Position #{mint_result.token_id} minted (TX: {mint_result.tx_hash})")

        return AddLiquidityResult(
            pool_address=state.address,
            window=window,
            current_tick=state.tick,
            amount0_desired=amount0,
            amount1_desired=amount1,
            mint=mint_result
        )

    # ----------------------------------------------------------
    # Balances / WPUSH
    # ----------------------------------------------------------

    @staticmethod
    def _owner(contract_wrapper) -> str:
        if contract_wrapper.account is None:
            raise ValueError("Account not configured")
        return contract_wrapper.account.address

    def ensure_balance(self, token: TokenDescriptor, amount: int, owner: str) -> Optional[str]:
        """
        Проверка баланса перед mint / swap.

        Нехватка WPUSH (если задан self.wpush) добирается deposit ровно на
        недостающую сумму нативного PUSH.

        Returns:
            tx_hash deposit или None

        Raises:
            ValueError: недостаточно токена (кроме WPUSH)
        """
        if amount <= 0:
            return None

        balance = self.factory.get_token_balance(token.address, owner)
        if balance >= amount:
            return None

        shortfall = amount - balance
        if self.wpush is not None and self.wpush.is_wrapped_native(token.address):
            logger.info(f"{token} balance {balance} < {amount}, wrapping {shortfall} native PUSH")
            return self.wpush.deposit(shortfall)

        raise ValueError(f"Insufficient {token} balance: need {amount}, have {balance}")

    # ----------------------------------------------------------
    # Swap
    # ----------------------------------------------------------

    def swap(
        self,
        pool_address: str,
        token_in: str,
        amount_in,
        min_amount_out=0
    ) -> SwapResult:
        """
        Обмен token_in на второй токен пула (exactInputSingle).

        Args:
            pool_address: Адрес пула
            token_in: Отдаваемый токен
            amount_in: Сумма token_in в человеческих единицах
            min_amount_out: Минимум получаемого токена (человеческие единицы)

        Returns:
            SwapResult
        """
        if self.swap_router is None:
            raise ValueError("Swap router not configured")

        state = self.factory.get_pool_state(pool_address)
        if not state.initialized:
            raise ValueError(f"Pool {pool_address} is not initialized")

        token_in_desc, token_out_desc = self._pool_tokens(state, token_in)

        amount = to_base_units(amount_in, token_in_desc.decimals)
        if amount == 0:
            raise ValueError("Swap amount must be positive")
        min_out = to_base_units(min_amount_out, token_out_desc.decimals)

        logger.info(
            f"Swapping {amount_in} {token_in_desc} -> {token_out_desc} in {state.address} "
            f"(fee {state.fee}, tick {state.tick}, min out {min_amount_out})"
        )

        try:
            owner = self._owner(self.swap_router)
            self.ensure_balance(token_in_desc, amount, owner)
            balance_out_before = self.factory.get_token_balance(token_out_desc.address, owner)

            self.swap_router.check_and_approve(token_in_desc.address, amount)
            tx_hash = self.swap_router.exact_input_single(SwapParams(
                token_in=token_in_desc.address,
                token_out=token_out_desc.address,
                fee=state.fee,
                amount_in=amount,
                amount_out_minimum=min_out
            ))

            amount_out = self.factory.get_token_balance(token_out_desc.address, owner) - balance_out_before
        except Exception as e:
            logger.error(f"Swap failed: {e}")
            raise

        logger.info(f"Swapped {amount} -> {amount_out} base units (TX: {tx_hash})")

        return SwapResult(
            pool_address=state.address,
            token_in=token_in_desc,
            token_out=token_out_desc,
            amount_in=amount,
            amount_out=amount_out,
            tx_hash=tx_hash
        )

    # ----------------------------------------------------------
    # Health
    # ----------------------------------------------------------

    def check_pool_health(
        self,
        pool_address: str,
        min_liquidity: int = 10 ** 17,
        tick_threshold: float = 0.9
    ) -> PoolHealth:
        """
        Проверка пула: достаточная ликвидность и тик не у края диапазона.

        Args:
            pool_address: Адрес пула
            min_liquidity: Минимальная ликвидность
            tick_threshold: Доля MAX_TICK, выше которой тик считается экстремальным
        """
        state = self.factory.get_pool_state(pool_address)
        tick_percent = state.tick / MAX_TICK * 100

        health = PoolHealth(
            pool_address=state.address,
            current_tick=state.tick,
            liquidity=state.liquidity,
            tick_percent=tick_percent
        )
        if not state.initialized:
            health.issues.append("Not initialized")
        if state.liquidity < min_liquidity:
            health.issues.append("Low liquidity")
        if abs(tick_percent) >= tick_threshold * 100:
            health.issues.append("Extreme tick position")

        if health.issues:
            logger.warning(f"Pool {state.address} unhealthy: {', '.join(health.issues)}")
        return health

    def check_registered_pools(self, **kwargs) -> List[PoolHealth]:
        """Проверка всех пулов из реестра (ошибки по пулу логируются, проверка продолжается)."""
        if self.registry is None:
            return []

        results = []
        for key, info in self.registry.items(POOLS_SECTION).items():
            try:
                results.append(self.check_pool_health(info["address"], **kwargs))
            except Exception as e:
                logger.error(f"Health check failed for {key}: {e}")
        return results
