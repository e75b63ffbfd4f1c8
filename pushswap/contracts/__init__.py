from .pool_factory import PoolFactory, PoolState
from .position_manager import UniswapV3PositionManager, MintParams, MintResult
from .swap_router import UniswapV3SwapRouter, SwapParams
from .tokens import WrappedNative
