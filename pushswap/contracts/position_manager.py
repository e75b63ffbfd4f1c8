"""
Uniswap V3 Position Manager Integration

Создание позиций через NonfungiblePositionManager (mint).
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract

from .abis import POSITION_MANAGER_ABI
from .tokens import check_and_approve
from ..math.ticks import TickWindow
from ..utils import NonceManager, send_contract_tx

logger = logging.getLogger(__name__)


@dataclass
class MintParams:
    """Параметры для создания позиции (token0/token1 уже в порядке пула)."""
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    amount0_desired: int
    amount1_desired: int
    amount0_min: int = 0
    amount1_min: int = 0

    @classmethod
    def from_window(
        cls,
        token0: str,
        token1: str,
        fee: int,
        window: TickWindow,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int = 0,
        amount1_min: int = 0
    ) -> 'MintParams':
        """Параметры mint из TickWindow (тики без изменений)."""
        return cls(
            token0=token0,
            token1=token1,
            fee=int(fee),
            tick_lower=window.tick_lower,
            tick_upper=window.tick_upper,
            amount0_desired=amount0_desired,
            amount1_desired=amount1_desired,
            amount0_min=amount0_min,
            amount1_min=amount1_min
        )

    def to_tuple(self, recipient: str, deadline: int = None) -> tuple:
        """Конвертация в tuple для контракта."""
        if deadline is None:
            deadline = int(time.time()) + 20 * 60

        return (
            Web3.to_checksum_address(self.token0),
            Web3.to_checksum_address(self.token1),
            self.fee,
            self.tick_lower,
            self.tick_upper,
            self.amount0_desired,
            self.amount1_desired,
            self.amount0_min,
            self.amount1_min,
            Web3.to_checksum_address(recipient),
            deadline
        )


@dataclass
class MintResult:
    """Результат создания позиции."""
    token_id: int
    liquidity: int
    amount0: int
    amount1: int
    tx_hash: str


class UniswapV3PositionManager:
    """Обёртка над NonfungiblePositionManager: approve + mint."""

    def __init__(
        self,
        w3: Web3,
        position_manager_address: str,
        account: LocalAccount = None,
        nonce_manager: 'NonceManager' = None,
        timeout: int = 300
    ):
        self.w3 = w3
        self.account = account
        self.nonce_manager = nonce_manager
        self.timeout = timeout
        self.position_manager_address = Web3.to_checksum_address(position_manager_address)
        self.contract: Contract = w3.eth.contract(
            address=self.position_manager_address,
            abi=POSITION_MANAGER_ABI
        )

    def check_and_approve(self, token_address: str, amount: int) -> Optional[str]:
        """
        Approve токена для position manager если allowance недостаточно.

        Returns:
            tx_hash если был approve, None если allowance уже достаточно
        """
        return check_and_approve(
            self.w3, self.account, token_address, self.position_manager_address, amount,
            nonce_manager=self.nonce_manager, timeout=self.timeout
        )

    def _parse_mint_events(self, receipt) -> Optional[dict]:
        """
        Парсинг IncreaseLiquidity из receipt, fallback на Transfer от address(0).

        Returns:
            dict с token_id, liquidity, amount0, amount1 или None
        """
        try:
            events = self.contract.events.IncreaseLiquidity().process_receipt(receipt)
            if events:
                args = events[0]['args']
                return {
                    'token_id': args['tokenId'],
                    'liquidity': args['liquidity'],
                    'amount0': args['amount0'],
                    'amount1': args['amount1']
                }
        except Exception as e:
            logger.debug(f"Failed to parse IncreaseLiquidity event: {e}")

        try:
            for event in self.contract.events.Transfer().process_receipt(receipt):
                if event['args']['from'] == '0x0000000000000000000000000000000000000000':
                    return {
                        'token_id': event['args']['tokenId'],
                        'liquidity': 0,
                        'amount0': 0,
                        'amount1': 0
                    }
        except Exception as e:
            logger.debug(f"Failed to parse Transfer event: {e}")

        return None

    def mint(self, params: MintParams, gas_limit: int = 1000000, deadline: int = None) -> MintResult:
        """
        Создание позиции.

        Args:
            params: Параметры позиции
            gas_limit: Лимит газа
            deadline: Deadline (по умолчанию +20 минут)

        Returns:
            MintResult
        """
        if self.account is None:
            raise ValueError("Account not configured")

        tx_hash, receipt = send_contract_tx(
            self.w3,
            self.account,
            self.contract.functions.mint(params.to_tuple(self.account.address, deadline)),
            gas=gas_limit,
            action="mint",
            nonce_manager=self.nonce_manager,
            timeout=self.timeout
        )

        event_data = self._parse_mint_events(receipt)
        if event_data is None:
            logger.warning(f"Mint confirmed but no position events found (TX: {tx_hash})")
            event_data = {'token_id': 0, 'liquidity': 0, 'amount0': 0, 'amount1': 0}

        return MintResult(tx_hash=tx_hash, **event_data)
