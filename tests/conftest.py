"""
Shared fixtures for all tests.
"""

import pytest
from unittest.mock import Mock, MagicMock

from pushswap.math.price import TokenDescriptor


class MockWeb3:
    """Переиспользуемый мок Web3 для тестов."""

    def __init__(self, initial_nonce: int = 100):
        self._nonce = initial_nonce
        self.eth = MagicMock()
        self.eth.get_transaction_count = MagicMock(return_value=self._nonce)
        self.eth.gas_price = 1_000_000_000  # 1 gwei
        self.eth.max_priority_fee = 1_000_000_000
        self.eth.get_block = MagicMock(return_value={'baseFeePerGas': 2_000_000_000})
        self.eth.chain_id = 42101
        self.eth.send_raw_transaction = MagicMock(return_value=b'\x12\x34' * 16)
        self.eth.wait_for_transaction_receipt = MagicMock(return_value={
            'status': 1,
            'gasUsed': 300_000,
            'logs': [],
            'transactionHash': b'\x12\x34' * 16
        })
        self.eth.contract = MagicMock()

    def set_nonce(self, nonce: int):
        self._nonce = nonce
        self.eth.get_transaction_count.return_value = nonce


@pytest.fixture
def mock_w3():
    """Мок Web3 instance."""
    return MockWeb3()


@pytest.fixture
def mock_account():
    """Мок LocalAccount."""
    account = Mock()
    account.address = "0x1234567890123456789012345678901234567890"
    account.sign_transaction = Mock(return_value=Mock(raw_transaction=b'signed_tx'))
    return account


@pytest.fixture
def mock_receipt_success():
    """Успешный receipt транзакции."""
    return {
        'status': 1,
        'gasUsed': 300_000,
        'logs': [],
        'transactionHash': b'\x12\x34' * 16,
    }


@pytest.fixture
def mock_receipt_fail():
    """Неуспешный receipt транзакции."""
    return {
        'status': 0,
        'gasUsed': 300_000,
        'logs': [],
        'transactionHash': b'\xde\xad' * 16,
    }


# Тестовые адреса (PUSDC < PETH при сравнении в lowercase)
PUSDC = "0x1111111111111111111111111111111111111111"
PETH = "0x9999999999999999999999999999999999999999"


@pytest.fixture
def peth():
    """pETH: 18 decimals, адрес больше pUSDC."""
    return TokenDescriptor(address=PETH, decimals=18, symbol="pETH")


@pytest.fixture
def pusdc():
    """pUSDC: 6 decimals, адрес меньше pETH."""
    return TokenDescriptor(address=PUSDC, decimals=6, symbol="pUSDC")
