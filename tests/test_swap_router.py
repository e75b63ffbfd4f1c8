"""
Tests for UniswapV3SwapRouter and SwapParams.
"""

import time

import pytest
from unittest.mock import Mock, patch

from pushswap.contracts.swap_router import SwapParams, UniswapV3SwapRouter
from pushswap.contracts.tokens import MAX_UINT256

TOKEN_IN = "0x9999999999999999999999999999999999999999"
TOKEN_OUT = "0x1111111111111111111111111111111111111111"
ROUTER = "0xf90F08fD301190Cd34CC9eFc5A76351e95051670"
TX_HASH = (b'\x12\x34' * 16).hex()

CHECKSUM = 'pushswap.contracts.swap_router.Web3.to_checksum_address'


# ============================================================
# SwapParams
# ============================================================

class TestSwapParams:
    """Параметры exactInputSingle."""

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_to_tuple_order(self, _mock_checksum):
        params = SwapParams(TOKEN_IN, TOKEN_OUT, 3000, 10 ** 18, 1800 * 10 ** 6)

        result = params.to_tuple("0xrecipient", deadline=1_700_000_000)

        assert result == (TOKEN_IN, TOKEN_OUT, 3000, "0xrecipient", 1_700_000_000, 10 ** 18, 1800 * 10 ** 6, 0)

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_to_tuple_default_deadline(self, _mock_checksum):
        before = int(time.time())
        deadline = SwapParams(TOKEN_IN, TOKEN_OUT, 500, 1).to_tuple("0xrecipient")[4]

        assert before + 20 * 60 <= deadline <= int(time.time()) + 20 * 60


# ============================================================
# UniswapV3SwapRouter
# ============================================================

class TestSwapRouter:
    """approve + exactInputSingle."""

    @pytest.fixture
    def router(self, mock_w3, mock_account):
        with patch.object(UniswapV3SwapRouter, '__init__', lambda self, *a, **kw: None):
            router = UniswapV3SwapRouter.__new__(UniswapV3SwapRouter)
            router.w3 = mock_w3
            router.account = mock_account
            router.nonce_manager = None
            router.timeout = 300
            router.router_address = ROUTER
            router.contract = Mock()
            return router

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_approve_router_as_spender(self, _mock_checksum, router, mock_w3, mock_account):
        token = Mock()
        token.functions.allowance.return_value.call.return_value = 0
        mock_w3.eth.contract.return_value = token

        assert router.check_and_approve(TOKEN_IN, 10 ** 18) == TX_HASH
        token.functions.allowance.assert_called_once_with(mock_account.address, ROUTER)
        token.functions.approve.assert_called_once_with(ROUTER, MAX_UINT256)

    @patch(CHECKSUM, side_effect=lambda x: x)
    def test_exact_input_single(self, _mock_checksum, router, mock_account):
        params = SwapParams(TOKEN_IN, TOKEN_OUT, 3000, 10 ** 18)

        tx_hash = router.exact_input_single(params, deadline=1_700_000_000)

        assert tx_hash == TX_HASH
        router.contract.functions.exactInputSingle.assert_called_once_with(
            (TOKEN_IN, TOKEN_OUT, 3000, mock_account.address, 1_700_000_000, 10 ** 18, 0, 0)
        )
        tx_params = router.contract.functions.exactInputSingle.return_value.build_transaction.call_args[0][0]
        assert tx_params['gas'] == 300000
        assert 'value' not in tx_params

    def test_exact_input_single_no_account(self, router):
        router.account = None
        with pytest.raises(ValueError, match="Account not configured"):
            router.exact_input_single(SwapParams(TOKEN_IN, TOKEN_OUT, 3000, 1))
