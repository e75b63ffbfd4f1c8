"""
ERC20 / WPUSH helpers

Общие операции с токенами для position manager и swap router:
балансы, approve на максимум и обёртка нативного PUSH в WPUSH.
"""

import logging
from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract

from .abis import ERC20_ABI, WPUSH_ABI
from ..utils import NonceManager, send_contract_tx

logger = logging.getLogger(__name__)

MAX_UINT256 = 2 ** 256 - 1


def get_token_contract(w3: Web3, token_address: str) -> Contract:
    return w3.eth.contract(
        address=Web3.to_checksum_address(token_address),
        abi=ERC20_ABI
    )


def get_balance(w3: Web3, token_address: str, owner: str) -> int:
    """Баланс токена в base units."""
    token = get_token_contract(w3, token_address)
    return token.functions.balanceOf(Web3.to_checksum_address(owner)).call()


def check_and_approve(
    w3: Web3,
    account: LocalAccount,
    token_address: str,
    spender: str,
    amount: int,
    nonce_manager: Optional[NonceManager] = None,
    timeout: int = 300
) -> Optional[str]:
    """
    Approve токена для spender если allowance недостаточно.

    Returns:
        tx_hash если был approve, None если allowance уже достаточно
    """
    if account is None:
        raise ValueError("Account not configured")

    token = get_token_contract(w3, token_address)
    current_allowance = token.functions.allowance(account.address, spender).call()

    if current_allowance >= amount:
        logger.debug(f"Allowance for {token_address} -> {spender} already sufficient")
        return None

    # Approve на максимум, чтобы не делать повторно
    tx_hash, _ = send_contract_tx(
        w3,
        account,
        token.functions.approve(spender, MAX_UINT256),
        gas=100000,
        action=f"approve {token_address}",
        nonce_manager=nonce_manager,
        timeout=timeout
    )
    return tx_hash


class WrappedNative:
    """WPUSH: deposit нативного PUSH 1:1."""

    def __init__(
        self,
        w3: Web3,
        address: str,
        account: LocalAccount = None,
        nonce_manager: 'NonceManager' = None,
        timeout: int = 300
    ):
        self.w3 = w3
        self.account = account
        self.nonce_manager = nonce_manager
        self.timeout = timeout
        self.address = Web3.to_checksum_address(address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=WPUSH_ABI)

    def is_wrapped_native(self, token_address: str) -> bool:
        return token_address.lower() == self.address.lower()

    def deposit(self, amount: int) -> str:
        """
        Обернуть amount wei нативного PUSH.

        Returns:
            tx_hash
        """
        if amount <= 0:
            raise ValueError(f"Deposit amount must be positive, got {amount}")

        logger.info(f"Wrapping {amount} wei PUSH -> WPUSH")
        tx_hash, _ = send_contract_tx(
            self.w3,
            self.account,
            self.contract.functions.deposit(),
            gas=100000,
            action="deposit WPUSH",
            nonce_manager=self.nonce_manager,
            timeout=self.timeout,
            value=amount
        )
        return tx_hash
