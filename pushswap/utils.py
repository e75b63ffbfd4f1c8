"""
Utility classes for transaction management.

Includes:
- NonceManager: Thread-safe nonce tracking for sequential transactions
- get_gas_params: EIP-1559 gas params with legacy fallback
- send_contract_tx: build / sign / send / wait with nonce bookkeeping
"""

import logging
import threading
import time
from typing import Optional

from web3 import Web3

from .exceptions import TransactionFailed

logger = logging.getLogger(__name__)


class NonceManager:
    """
    Thread-safe nonce manager.

    create pool -> initialize -> approve -> mint отправляются подряд,
    и get_transaction_count('pending') на медленном RPC может вернуть
    один и тот же nonce для двух транзакций.

    Usage:
        nonce_mgr = NonceManager(w3, account_address)
        nonce = nonce_mgr.get_next_nonce()
        ...
        nonce_mgr.confirm_transaction(nonce)   # TX mined
        nonce_mgr.release_nonce(nonce)         # TX never sent
    """

    def __init__(self, w3: Web3, account_address: str, sync_interval: float = 30.0):
        self.w3 = w3
        self.account_address = Web3.to_checksum_address(account_address)
        self._lock = threading.Lock()
        self._current_nonce: Optional[int] = None
        self._pending_nonces: set = set()
        self._last_sync_time: float = 0
        self._sync_interval = sync_interval

    def _sync_nonce(self) -> int:
        return self.w3.eth.get_transaction_count(self.account_address, 'pending')

    def get_next_nonce(self, force_sync: bool = False) -> int:
        """
        Get the next available nonce.

        Args:
            force_sync: Force sync with blockchain even if recently synced
        """
        with self._lock:
            now = time.time()

            if (self._current_nonce is None or
                    force_sync or
                    now - self._last_sync_time > self._sync_interval):
                chain_nonce = self._sync_nonce()
                # Nonces below chain_nonce are already mined
                self._pending_nonces = {n for n in self._pending_nonces if n >= chain_nonce}
                if self._current_nonce is None:
                    self._current_nonce = chain_nonce
                else:
                    self._current_nonce = max(self._current_nonce, chain_nonce)
                self._last_sync_time = now
                logger.debug(f"Synced nonce with blockchain: {self._current_nonce}")

            nonce = self._current_nonce
            self._current_nonce += 1
            self._pending_nonces.add(nonce)
            logger.debug(f"Allocated nonce: {nonce}, pending: {len(self._pending_nonces)}")
            return nonce

    def confirm_transaction(self, nonce: int):
        """Mark a nonce as confirmed (transaction included in block)."""
        with self._lock:
            self._pending_nonces.discard(nonce)

    def release_nonce(self, nonce: int):
        """
        Release a nonce that wasn't used (transaction failed before sending).

        Reclaims the nonce if it was the most recently allocated one.
        """
        with self._lock:
            self._pending_nonces.discard(nonce)
            if self._current_nonce is not None and nonce == self._current_nonce - 1:
                self._current_nonce = nonce
            logger.debug(f"Released nonce: {nonce}, current: {self._current_nonce}")

    def get_pending_count(self) -> int:
        with self._lock:
            return len(self._pending_nonces)

    def reset(self):
        """Force re-sync on next call."""
        with self._lock:
            self._current_nonce = None
            self._pending_nonces.clear()
            self._last_sync_time = 0


def get_gas_params(w3: Web3) -> dict:
    """Параметры газа: EIP-1559 если поддерживается, иначе legacy."""
    try:
        max_priority_fee = w3.eth.max_priority_fee
        base_fee = w3.eth.get_block('latest')['baseFeePerGas']
        return {
            'maxPriorityFeePerGas': max_priority_fee,
            'maxFeePerGas': base_fee * 2 + max_priority_fee,
        }
    except Exception as e:
        logger.debug(f"EIP-1559 gas params unavailable, using legacy gasPrice: {e}")
        return {'gasPrice': w3.eth.gas_price}


def send_contract_tx(
    w3: Web3,
    account,
    contract_fn,
    gas: int,
    action: str,
    nonce_manager: Optional[NonceManager] = None,
    timeout: int = 300,
    value: int = 0
):
    """
    Отправка транзакции контракта и ожидание receipt.

    Args:
        w3: Web3 instance
        account: LocalAccount для подписи
        contract_fn: Подготовленный вызов (contract.functions.x(...))
        gas: Лимит газа
        action: Название операции для логов / ошибок
        nonce_manager: Опциональный NonceManager
        timeout: Таймаут ожидания receipt
        value: Нативная сумма (wei)

    Returns:
        (tx_hash hex, receipt)

    Raises:
        TransactionFailed: receipt со status != 1
    """
    if account is None:
        raise ValueError("Account not configured")

    nonce = nonce_manager.get_next_nonce() if nonce_manager else \
        w3.eth.get_transaction_count(account.address, 'pending')

    tx_sent = False
    try:
        tx_params = {
            'from': account.address,
            'nonce': nonce,
            'gas': gas,
        }
        if value:
            tx_params['value'] = value
        tx_params.update(get_gas_params(w3))
        tx = contract_fn.build_transaction(tx_params)

        signed = account.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_sent = True
        logger.info(f"{action}: sent {tx_hash.hex()} (nonce {nonce})")

        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)

        # TX mined: nonce consumed (even if reverted)
        if nonce_manager:
            nonce_manager.confirm_transaction(nonce)

        if receipt['status'] != 1:
            raise TransactionFailed(action, tx_hash.hex())

        logger.info(f"{action}: confirmed, gas used {receipt.get('gasUsed')}")
        return tx_hash.hex(), receipt

    except Exception:
        if nonce_manager:
            if tx_sent:
                nonce_manager.confirm_transaction(nonce)
            else:
                nonce_manager.release_nonce(nonce)
        raise
