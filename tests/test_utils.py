"""
Tests for pushswap.utils: NonceManager, get_gas_params, send_contract_tx.
"""

import pytest
import threading
from unittest.mock import Mock, MagicMock

from pushswap.exceptions import TransactionFailed
from pushswap.utils import NonceManager, get_gas_params, send_contract_tx

ACCOUNT = "0x1234567890123456789012345678901234567890"
TX_HASH = b'\x12\x34' * 16


# ============================================================
# NonceManager Tests
# ============================================================

class TestNonceManager:
    """Tests for NonceManager."""

    def test_initial_sync(self, mock_w3):
        """Первый get_next_nonce синхронизируется с блокчейном."""
        manager = NonceManager(mock_w3, ACCOUNT)

        assert manager.get_next_nonce() == 100
        assert manager.get_pending_count() == 1
        mock_w3.eth.get_transaction_count.assert_called_once()

    def test_sequential_nonces(self, mock_w3):
        """create_pool -> initialize -> approve -> mint получают разные nonce."""
        manager = NonceManager(mock_w3, ACCOUNT)

        nonces = [manager.get_next_nonce() for _ in range(4)]

        assert nonces == [100, 101, 102, 103]
        assert manager.get_pending_count() == 4

    def test_confirm_transaction(self, mock_w3):
        manager = NonceManager(mock_w3, ACCOUNT)
        nonce = manager.get_next_nonce()

        manager.confirm_transaction(nonce)

        assert manager.get_pending_count() == 0

    def test_release_last_nonce_reuses_it(self, mock_w3):
        """Неотправленный последний nonce возвращается в оборот."""
        manager = NonceManager(mock_w3, ACCOUNT)
        nonce = manager.get_next_nonce()

        manager.release_nonce(nonce)

        assert manager.get_next_nonce() == nonce

    def test_release_older_nonce_does_not_rewind(self, mock_w3):
        manager = NonceManager(mock_w3, ACCOUNT)
        first = manager.get_next_nonce()
        manager.get_next_nonce()

        manager.release_nonce(first)

        assert manager.get_next_nonce() == 102

    def test_force_sync_moves_forward(self, mock_w3):
        """Если в сети nonce ушёл вперёд (TX из другого клиента) - берём его."""
        manager = NonceManager(mock_w3, ACCOUNT)
        manager.get_next_nonce()

        mock_w3.set_nonce(150)

        assert manager.get_next_nonce(force_sync=True) == 150

    def test_force_sync_never_goes_back(self, mock_w3):
        manager = NonceManager(mock_w3, ACCOUNT)
        manager.get_next_nonce()
        manager.get_next_nonce()

        mock_w3.set_nonce(100)

        assert manager.get_next_nonce(force_sync=True) == 102

    def test_reset(self, mock_w3):
        manager = NonceManager(mock_w3, ACCOUNT)
        manager.get_next_nonce()
        manager.get_next_nonce()

        manager.reset()
        mock_w3.set_nonce(105)

        assert manager.get_pending_count() == 0
        assert manager.get_next_nonce() == 105

    def test_thread_safety(self, mock_w3):
        """Параллельные вызовы не выдают одинаковых nonce."""
        manager = NonceManager(mock_w3, ACCOUNT)
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(25):
                nonce = manager.get_next_nonce()
                with lock:
                    results.append(nonce)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 100
        assert len(set(results)) == 100


# ============================================================
# get_gas_params Tests
# ============================================================

class TestGetGasParams:
    """EIP-1559 / legacy газ."""

    def test_eip1559(self, mock_w3):
        params = get_gas_params(mock_w3)

        assert params == {
            'maxPriorityFeePerGas': 1_000_000_000,
            'maxFeePerGas': 2_000_000_000 * 2 + 1_000_000_000,
        }

    def test_legacy_fallback(self, mock_w3):
        """Нет baseFeePerGas в блоке -> gasPrice."""
        mock_w3.eth.get_block = MagicMock(return_value={})

        assert get_gas_params(mock_w3) == {'gasPrice': 1_000_000_000}


# ============================================================
# send_contract_tx Tests
# ============================================================

class TestSendContractTx:
    """build -> sign -> send -> wait."""

    @pytest.fixture
    def contract_fn(self):
        return Mock(build_transaction=Mock(return_value={'to': '0xpool', 'data': '0x'}))

    def test_success(self, mock_w3, mock_account, contract_fn):
        tx_hash, receipt = send_contract_tx(
            mock_w3, mock_account, contract_fn, gas=500000, action="initialize_pool"
        )

        assert tx_hash == TX_HASH.hex()
        assert receipt['status'] == 1
        mock_account.sign_transaction.assert_called_once_with({'to': '0xpool', 'data': '0x'})
        mock_w3.eth.send_raw_transaction.assert_called_once_with(b'signed_tx')

    def test_tx_params(self, mock_w3, mock_account, contract_fn):
        send_contract_tx(mock_w3, mock_account, contract_fn, gas=5000000, action="create_pool")

        tx_params = contract_fn.build_transaction.call_args[0][0]
        assert tx_params['from'] == mock_account.address
        assert tx_params['nonce'] == 100
        assert tx_params['gas'] == 5000000
        assert 'maxFeePerGas' in tx_params
        assert 'value' not in tx_params

    def test_value_passed(self, mock_w3, mock_account, contract_fn):
        send_contract_tx(mock_w3, mock_account, contract_fn, gas=100000, action="wrap", value=10 ** 18)

        assert contract_fn.build_transaction.call_args[0][0]['value'] == 10 ** 18

    def test_timeout_passed(self, mock_w3, mock_account, contract_fn):
        send_contract_tx(mock_w3, mock_account, contract_fn, gas=100000, action="approve", timeout=42)

        mock_w3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH, timeout=42)

    def test_no_account(self, mock_w3, contract_fn):
        with pytest.raises(ValueError, match="Account not configured"):
            send_contract_tx(mock_w3, None, contract_fn, gas=100000, action="mint")

    def test_reverted(self, mock_w3, mock_account, contract_fn, mock_receipt_fail):
        mock_w3.eth.wait_for_transaction_receipt.return_value = mock_receipt_fail

        with pytest.raises(TransactionFailed, match="mint transaction reverted") as exc_info:
            send_contract_tx(mock_w3, mock_account, contract_fn, gas=100000, action="mint")

        assert exc_info.value.tx_hash == TX_HASH.hex()

    def test_nonce_manager_used_and_confirmed(self, mock_w3, mock_account, contract_fn):
        manager = NonceManager(mock_w3, ACCOUNT)

        send_contract_tx(mock_w3, mock_account, contract_fn, gas=100000, action="mint",
                         nonce_manager=manager)

        assert contract_fn.build_transaction.call_args[0][0]['nonce'] == 100
        assert manager.get_pending_count() == 0

    def test_reverted_nonce_still_consumed(self, mock_w3, mock_account, contract_fn, mock_receipt_fail):
        """Замайненная (но revert) TX расходует nonce."""
        mock_w3.eth.wait_for_transaction_receipt.return_value = mock_receipt_fail
        manager = NonceManager(mock_w3, ACCOUNT)

        with pytest.raises(TransactionFailed):
            send_contract_tx(mock_w3, mock_account, contract_fn, gas=100000, action="mint",
                             nonce_manager=manager)

        assert manager.get_pending_count() == 0
        assert manager.get_next_nonce() == 101

    def test_not_sent_releases_nonce(self, mock_w3, mock_account, contract_fn):
        """Ошибка до отправки -> nonce возвращается."""
        mock_account.sign_transaction.side_effect = RuntimeError("signing failed")
        manager = NonceManager(mock_w3, ACCOUNT)

        with pytest.raises(RuntimeError, match="signing failed"):
            send_contract_tx(mock_w3, mock_account, contract_fn, gas=100000, action="mint",
                             nonce_manager=manager)

        assert manager.get_pending_count() == 0
        assert manager.get_next_nonce() == 100
