"""
Tests for UniswapV3PositionManager and MintParams.
"""

import time

import pytest
from unittest.mock import Mock, patch

from pushswap.contracts.position_manager import (
    MintParams,
    MintResult,
    UniswapV3PositionManager,
)
from pushswap.contracts.tokens import MAX_UINT256
from pushswap.math.ticks import TickWindow

TOKEN0 = "0x1111111111111111111111111111111111111111"
TOKEN1 = "0x9999999999999999999999999999999999999999"
PM_ADDRESS = "0x4e8152fB4C72De9f187Cc93E85135283517B2fbB"
TX_HASH = (b'\x12\x34' * 16).hex()

CHECKSUM = 'pushswap.contracts.position_manager.Web3.to_checksum_address'


# ============================================================
# MintParams
# ============================================================

class TestMintParams:
    """Параметры mint."""

    def test_from_window(self):
        params = MintParams.from_window(TOKEN0, TOKEN1, 3000, TickWindow(45900, 46200), 10 ** 6, 10 ** 18)

        assert params.tick_lower == 45900
        assert params.tick_upper == 46200
        assert params.fee == 3000
        assert params.amount0_desired == 10 ** 6
        assert params.amount1_desired == 10 ** 18
        assert params.amount0_min == 0
        assert params.amount1_min == 0

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_to_tuple_order(self, _mock_checksum):
        params = MintParams(TOKEN0, TOKEN1, 500, -180, -70, 1, 2, 3, 4)

        result = params.to_tuple("0xrecipient", deadline=1_700_000_000)

        assert result == (TOKEN0, TOKEN1, 500, -180, -70, 1, 2, 3, 4, "0xrecipient", 1_700_000_000)

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_to_tuple_default_deadline(self, _mock_checksum):
        """Deadline по умолчанию: +20 минут."""
        params = MintParams(TOKEN0, TOKEN1, 3000, -60, 60, 1, 1)

        before = int(time.time())
        deadline = params.to_tuple("0xrecipient")[-1]

        assert before + 20 * 60 <= deadline <= int(time.time()) + 20 * 60


# ============================================================
# UniswapV3PositionManager
# ============================================================

class TestPositionManager:
    """approve + mint."""

    @pytest.fixture
    def pm(self, mock_w3, mock_account):
        with patch.object(UniswapV3PositionManager, '__init__', lambda self, *a, **kw: None):
            manager = UniswapV3PositionManager.__new__(UniswapV3PositionManager)
            manager.w3 = mock_w3
            manager.account = mock_account
            manager.nonce_manager = None
            manager.timeout = 300
            manager.position_manager_address = PM_ADDRESS
            manager.contract = Mock()
            return manager

    @pytest.fixture
    def token(self, mock_w3):
        token = Mock()
        token.functions.allowance.return_value.call.return_value = 0
        mock_w3.eth.contract.return_value = token
        return token

    # ----------------------------------------------------------
    # check_and_approve
    # ----------------------------------------------------------

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_allowance_sufficient(self, _mock_checksum, pm, token):
        token.functions.allowance.return_value.call.return_value = 10 ** 18

        assert pm.check_and_approve(TOKEN0, 10 ** 18) is None
        token.functions.approve.assert_not_called()

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_approve_max(self, _mock_checksum, pm, token, mock_account):
        tx_hash = pm.check_and_approve(TOKEN0, 10 ** 18)

        assert tx_hash == TX_HASH
        token.functions.allowance.assert_called_once_with(mock_account.address, PM_ADDRESS)
        token.functions.approve.assert_called_once_with(PM_ADDRESS, MAX_UINT256)

    def test_approve_no_account(self, pm):
        pm.account = None
        with pytest.raises(ValueError, match="Account not configured"):
            pm.check_and_approve(TOKEN0, 1)

    # ----------------------------------------------------------
    # mint
    # ----------------------------------------------------------

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_mint_increase_liquidity_event(self, _mock_checksum, pm, mock_account):
        pm.contract.events.IncreaseLiquidity.return_value.process_receipt.return_value = [
            {'args': {'tokenId': 42, 'liquidity': 1000, 'amount0': 10, 'amount1': 20}}
        ]
        params = MintParams(TOKEN0, TOKEN1, 3000, 45900, 46200, 10, 20)

        result = pm.mint(params, deadline=1_700_000_000)

        assert result == MintResult(token_id=42, liquidity=1000, amount0=10, amount1=20, tx_hash=TX_HASH)
        pm.contract.functions.mint.assert_called_once_with(
            (TOKEN0, TOKEN1, 3000, 45900, 46200, 10, 20, 0, 0, mock_account.address, 1_700_000_000)
        )
        tx_params = pm.contract.functions.mint.return_value.build_transaction.call_args[0][0]
        assert tx_params['gas'] == 1000000

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_mint_transfer_fallback(self, _mock_checksum, pm):
        """Нет IncreaseLiquidity -> tokenId из Transfer от address(0)."""
        pm.contract.events.IncreaseLiquidity.return_value.process_receipt.return_value = []
        pm.contract.events.Transfer.return_value.process_receipt.return_value = [
            {'args': {'from': '0x0000000000000000000000000000000000000000', 'to': TOKEN0, 'tokenId': 7}}
        ]

        result = pm.mint(MintParams(TOKEN0, TOKEN1, 500, -10, 10, 1, 1))

        assert result.token_id == 7
        assert result.liquidity == 0

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_mint_no_events(self, _mock_checksum, pm):
        pm.contract.events.IncreaseLiquidity.return_value.process_receipt.side_effect = Exception("abi")
        pm.contract.events.Transfer.return_value.process_receipt.return_value = []

        result = pm.mint(MintParams(TOKEN0, TOKEN1, 500, -10, 10, 1, 1))

        assert result.token_id == 0
        assert result.tx_hash == TX_HASH

    def test_mint_no_account(self, pm):
        pm.account = None
        with pytest.raises(ValueError, match="Account not configured"):
            pm.mint(MintParams(TOKEN0, TOKEN1, 500, -10, 10, 1, 1))
