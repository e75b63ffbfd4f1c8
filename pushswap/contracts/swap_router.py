"""
Uniswap V3 SwapRouter Integration

Обмен через exactInputSingle (один пул, фиксированный вход).
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract

from .abis import SWAP_ROUTER_ABI
from .tokens import check_and_approve
from ..utils import NonceManager, send_contract_tx

logger = logging.getLogger(__name__)


@dataclass
class SwapParams:
    """Параметры exactInputSingle (суммы в base units)."""
    token_in: str
    token_out: str
    fee: int
    amount_in: int
    amount_out_minimum: int = 0
    sqrt_price_limit_x96: int = 0

    def to_tuple(self, recipient: str, deadline: int = None) -> tuple:
        """Конвертация в tuple для контракта."""
        if deadline is None:
            deadline = int(time.time()) + 20 * 60

        return (
            Web3.to_checksum_address(self.token_in),
            Web3.to_checksum_address(self.token_out),
            int(self.fee),
            Web3.to_checksum_address(recipient),
            deadline,
            self.amount_in,
            self.amount_out_minimum,
            self.sqrt_price_limit_x96
        )


class UniswapV3SwapRouter:
    """Обёртка над SwapRouter: approve + exactInputSingle."""

    def __init__(
        self,
        w3: Web3,
        router_address: str,
        account: LocalAccount = None,
        nonce_manager: 'NonceManager' = None,
        timeout: int = 300
    ):
        self.w3 = w3
        self.account = account
        self.nonce_manager = nonce_manager
        self.timeout = timeout
        self.router_address = Web3.to_checksum_address(router_address)
        self.contract: Contract = w3.eth.contract(
            address=self.router_address,
            abi=SWAP_ROUTER_ABI
        )

    def check_and_approve(self, token_address: str, amount: int) -> Optional[str]:
        """Approve токена для роутера если allowance недостаточно."""
        return check_and_approve(
            self.w3, self.account, token_address, self.router_address, amount,
            nonce_manager=self.nonce_manager, timeout=self.timeout
        )

    def exact_input_single(self, params: SwapParams, gas_limit: int = 300000, deadline: int = None) -> str:
        """
        Обмен amount_in token_in на token_out.

        Args:
            params: Параметры обмена
            gas_limit: Лимит газа
            deadline: Deadline (по умолчанию +20 минут)

        Returns:
            tx_hash
        """
        if self.account is None:
            raise ValueError("Account not configured")

        tx_hash, _ = send_contract_tx(
            self.w3,
            self.account,
            self.contract.functions.exactInputSingle(params.to_tuple(self.account.address, deadline)),
            gas=gas_limit,
            action="swap",
            nonce_manager=self.nonce_manager,
            timeout=self.timeout
        )
        return tx_hash
