"""
Uniswap V3 Pool Factory Integration

Работа с фабрикой пулов: адреса пулов, создание, инициализация
ценой (sqrtPriceX96) и свежее чтение состояния пула.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from eth_account.signers.local import LocalAccount
from web3 import Web3

from .abis import ERC20_ABI, FACTORY_ABI, POOL_ABI
from .tokens import get_balance
from ..exceptions import MissingTokenMetadata
from ..math.price import TokenDescriptor
from ..math.ticks import get_tick_spacing
from ..utils import NonceManager, send_contract_tx

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass
class PoolState:
    """Состояние пула (читать прямо перед расчётом диапазона)."""
    address: str
    token0: str
    token1: str
    fee: int
    tick_spacing: int
    sqrt_price_x96: int
    tick: int
    liquidity: int
    initialized: bool


class PoolFactory:
    """
    Класс для работы с UniswapV3Factory на Push Chain.

    Позволяет:
    - Получать метаданные токенов (decimals обязательны)
    - Получать адреса существующих пулов
    - Создавать новые пулы
    - Инициализировать пулы значением sqrtPriceX96
    """

    def __init__(
        self,
        w3: Web3,
        factory_address: str,
        account: LocalAccount = None,
        nonce_manager: 'NonceManager' = None,
        timeout: int = 300
    ):
        self.w3 = w3
        self.account = account
        self.nonce_manager = nonce_manager
        self.timeout = timeout
        self.factory_address = Web3.to_checksum_address(factory_address)
        self.factory = w3.eth.contract(
            address=self.factory_address,
            abi=FACTORY_ABI
        )

    def _pool_contract(self, pool_address: str):
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(pool_address),
            abi=POOL_ABI
        )

    def get_token_descriptor(self, token_address: str) -> TokenDescriptor:
        """
        Получение адреса, decimals и symbol токена.

        Raises:
            MissingTokenMetadata: decimals не читаются (18 не подставляется)
        """
        if not token_address:
            raise MissingTokenMetadata("Token address is required")

        address = Web3.to_checksum_address(token_address)
        token = self.w3.eth.contract(address=address, abi=ERC20_ABI)

        try:
            decimals = token.functions.decimals().call()
        except Exception as e:
            raise MissingTokenMetadata(f"Failed to get decimals for {address}: {e}") from e

        try:
            symbol = token.functions.symbol().call()
        except Exception as e:
            logger.debug(f"Failed to get symbol for {address}: {e}")
            symbol = "UNKNOWN"

        return TokenDescriptor(address=address, decimals=decimals, symbol=symbol)

    def get_token_balance(self, token_address: str, owner: str) -> int:
        """Баланс owner в base units (ERC20 balanceOf)."""
        return get_balance(self.w3, token_address, owner)

    def get_pool_address(self, token_a: str, token_b: str, fee: int) -> Optional[str]:
        """
        Адрес существующего пула или None.

        getPool фабрики заполнен в обоих порядках, сортировка не нужна.
        """
        pool_address = self.factory.functions.getPool(
            Web3.to_checksum_address(token_a),
            Web3.to_checksum_address(token_b),
            int(fee)
        ).call()

        if pool_address == ZERO_ADDRESS:
            return None
        return pool_address

    def get_pool_state(self, pool_address: str) -> PoolState:
        """
        Свежее чтение fee, slot0 и liquidity пула.

        Raises:
            UnknownFeeTier: fee пула не поддерживается
        """
        address = Web3.to_checksum_address(pool_address)
        pool = self._pool_contract(address)

        token0 = pool.functions.token0().call()
        token1 = pool.functions.token1().call()
        fee = pool.functions.fee().call()
        liquidity = pool.functions.liquidity().call()
        slot0 = pool.functions.slot0().call()
        sqrt_price_x96, tick = slot0[0], slot0[1]

        return PoolState(
            address=address,
            token0=token0,
            token1=token1,
            fee=fee,
            tick_spacing=get_tick_spacing(fee),
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            liquidity=liquidity,
            initialized=sqrt_price_x96 > 0
        )

    def is_initialized(self, pool_address: str) -> bool:
        slot0 = self._pool_contract(pool_address).functions.slot0().call()
        return slot0[0] > 0

    def create_pool(self, token_a: str, token_b: str, fee: int) -> Tuple[str, str]:
        """
        Создание нового пула.

        Args:
            token_a: Адрес первого токена
            token_b: Адрес второго токена
            fee: Fee tier (500, 3000, 10000)

        Returns:
            (tx_hash, pool_address)
        """
        get_tick_spacing(fee)

        token_a = Web3.to_checksum_address(token_a)
        token_b = Web3.to_checksum_address(token_b)

        existing = self.get_pool_address(token_a, token_b, fee)
        if existing:
            raise ValueError(f"Pool already exists at {existing}")

        tx_hash, receipt = send_contract_tx(
            self.w3,
            self.account,
            self.factory.functions.createPool(token_a, token_b, int(fee)),
            gas=5000000,
            action="create_pool",
            nonce_manager=self.nonce_manager,
            timeout=self.timeout
        )

        pool_address = None
        try:
            events = self.factory.events.PoolCreated().process_receipt(receipt)
            if events:
                pool_address = events[0]['args']['pool']
        except Exception as e:
            logger.debug(f"Failed to parse PoolCreated event: {e}")

        if not pool_address:
            pool_address = self.get_pool_address(token_a, token_b, fee)
        if not pool_address:
            raise ValueError(f"Failed to get pool address after creation (TX: {tx_hash})")

        logger.info(f"Pool created at {pool_address} (fee {fee})")
        return tx_hash, pool_address

    def initialize_pool(self, pool_address: str, sqrt_price_x96: int) -> str:
        """
        Инициализация пула начальной ценой.

        Args:
            pool_address: Адрес пула
            sqrt_price_x96: Значение из PriceEncoder, передаётся без изменений

        Returns:
            tx_hash
        """
        if isinstance(sqrt_price_x96, bool) or not isinstance(sqrt_price_x96, int) or sqrt_price_x96 <= 0:
            raise ValueError(f"sqrtPriceX96 must be a positive integer, got {sqrt_price_x96!r}")

        pool = self._pool_contract(pool_address)
        if pool.functions.slot0().call()[0] > 0:
            raise ValueError(f"Pool {pool_address} is already initialized")

        tx_hash, _ = send_contract_tx(
            self.w3,
            self.account,
            pool.functions.initialize(sqrt_price_x96),
            gas=500000,
            action="initialize_pool",
            nonce_manager=self.nonce_manager,
            timeout=self.timeout
        )
        return tx_hash
