"""
Push Chain V3 Pool Tool

Команды:
    encode-price    sqrtPriceX96 для цены пары (без сети)
    plan-range      диапазон тиков для fee и текущего тика (без сети)
    create-pool     создать и инициализировать пул
    add-liquidity   добавить ликвидность вокруг текущего тика
    add-full-range  добавить ликвидность на полный диапазон
    swap            обменять токен пула на второй токен
    pool-health     проверить пулы из реестра (или один пул)

Примеры:
    python main.py encode-price --token0 0xaaa... --decimals0 18 --token1 0xbbb... --decimals1 6 --price 4000
    python main.py create-pool --token0 0xaaa... --token1 0xbbb... --price 4000 --fee 3000
    python main.py add-liquidity --pool 0xccc... --token 0xaaa... --amount 1 --other-amount 4000 --range 120
    python main.py swap --pool 0xccc... --token-in 0xaaa... --amount 0.5
"""

import argparse
import logging
import sys

from eth_account import Account
from web3 import Web3

from config import (
    DEFAULT_FEE,
    DEFAULT_RANGE,
    DEFAULT_TX_TIMEOUT,
    HEALTH_MIN_LIQUIDITY,
    HEALTH_TICK_THRESHOLD,
    PUSH_CONTRACTS,
    load_settings,
)
from pushswap.contracts.pool_factory import PoolFactory
from pushswap.contracts.position_manager import UniswapV3PositionManager
from pushswap.contracts.swap_router import UniswapV3SwapRouter
from pushswap.contracts.tokens import WrappedNative
from pushswap.exceptions import PricingError, TransactionFailed
from pushswap.math.price import TokenDescriptor, encode, sqrt_price_x96_to_price
from pushswap.math.ticks import get_tick_spacing, plan, tick_to_price
from pushswap.pool_manager import PoolManager
from pushswap.registry import AddressRegistry
from pushswap.utils import NonceManager

logger = logging.getLogger("pushswap")


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler("pushswap.log", encoding="utf-8"),
            logging.StreamHandler()
        ]
    )


def build_manager(need_account: bool = True) -> PoolManager:
    """Web3 + контракты + реестр из .env."""
    settings = load_settings()
    w3 = Web3(Web3.HTTPProvider(settings.rpc_url))

    account = None
    nonce_manager = None
    if settings.private_key:
        account = Account.from_key(settings.private_key)
        nonce_manager = NonceManager(w3, account.address)
    elif need_account:
        raise ValueError("PRIVATE_KEY not found in .env file")

    factory = PoolFactory(
        w3, PUSH_CONTRACTS.factory, account=account,
        nonce_manager=nonce_manager, timeout=DEFAULT_TX_TIMEOUT
    )
    position_manager = UniswapV3PositionManager(
        w3, PUSH_CONTRACTS.position_manager, account=account,
        nonce_manager=nonce_manager, timeout=DEFAULT_TX_TIMEOUT
    )
    swap_router = UniswapV3SwapRouter(
        w3, PUSH_CONTRACTS.swap_router, account=account,
        nonce_manager=nonce_manager, timeout=DEFAULT_TX_TIMEOUT
    )
    wpush = WrappedNative(
        w3, PUSH_CONTRACTS.wpush, account=account,
        nonce_manager=nonce_manager, timeout=DEFAULT_TX_TIMEOUT
    )
    return PoolManager(
        factory, position_manager, AddressRegistry(settings.registry_path),
        swap_router=swap_router, wpush=wpush
    )


# ============================================================
# COMMANDS
# ============================================================

def cmd_encode_price(args):
    token_a = TokenDescriptor(address=args.token0, decimals=args.decimals0)
    token_b = TokenDescriptor(address=args.token1, decimals=args.decimals1)
    encoded = encode(token_a, token_b, args.price)

    print("=" * 60)
    print("PRICE ENCODING")
    print("=" * 60)
    print(f"  Pool token0:   {encoded.token0.address} ({encoded.token0.decimals} decimals)")
    print(f"  Pool token1:   {encoded.token1.address} ({encoded.token1.decimals} decimals)")
    print(f"  Inverted:      {encoded.inverted}")
    print(f"  Raw ratio:     {encoded.raw_ratio}")
    print(f"  sqrtPriceX96:  {encoded.sqrt_price_x96}")
    human = sqrt_price_x96_to_price(encoded.sqrt_price_x96, encoded.token0.decimals, encoded.token1.decimals)
    print(f"  Check:         1 token0 = {human:.12g} token1")


def cmd_plan_range(args):
    window = plan(args.fee, args.tick, args.range)

    print("=" * 60)
    print("TICK RANGE")
    print("=" * 60)
    print(f"  Fee:           {args.fee} (spacing {get_tick_spacing(args.fee)})")
    print(f"  Current tick:  {args.tick}")
    print(f"  Range:         ±{args.range}")
    print(f"  tickLower:     {window.tick_lower} (raw price {tick_to_price(window.tick_lower):.8g})")
    print(f"  tickUpper:     {window.tick_upper} (raw price {tick_to_price(window.tick_upper):.8g})")


def cmd_create_pool(args):
    manager = build_manager()
    result = manager.create_pool(args.token0, args.token1, args.price, fee=args.fee)

    print(f"\nPool:          {result.pool_address}")
    print(f"Token0:        {result.token0.symbol} ({result.token0.address})")
    print(f"Token1:        {result.token1.symbol} ({result.token1.address})")
    print(f"sqrtPriceX96:  {result.sqrt_price_x96}")
    print(f"Current tick:  {result.current_tick}")
    if result.create_tx:
        print(f"Create TX:     {result.create_tx}")
    if result.init_tx:
        print(f"Init TX:       {result.init_tx}")


def cmd_add_liquidity(args):
    manager = build_manager()
    if args.full_range:
        result = manager.add_full_range_liquidity(args.pool, args.token, args.amount, args.other_amount)
    else:
        result = manager.add_liquidity(
            args.pool, args.token, args.amount, args.other_amount,
            range_half_width=args.range
        )

    print(f"\nPosition NFT:  #{result.mint.token_id}")
    print(f"Tick range:    [{result.window.tick_lower}, {result.window.tick_upper}] (current {result.current_tick})")
    print(f"Liquidity:     {result.mint.liquidity}")
    print(f"TX:            {result.mint.tx_hash}")


def cmd_swap(args):
    manager = build_manager()
    result = manager.swap(args.pool, args.token_in, args.amount, min_amount_out=args.min_out)

    print(f"\nSwapped:       {args.amount} {result.token_in} -> {result.token_out}")
    print(f"Amount in:     {result.amount_in} (base units)")
    print(f"Amount out:    {result.amount_out} (base units)")
    print(f"TX:            {result.tx_hash}")


def cmd_pool_health(args):
    manager = build_manager(need_account=False)
    kwargs = dict(min_liquidity=HEALTH_MIN_LIQUIDITY, tick_threshold=HEALTH_TICK_THRESHOLD)
    if args.pool:
        results = [manager.check_pool_health(args.pool, **kwargs)]
    else:
        results = manager.check_registered_pools(**kwargs)

    for health in results:
        status = "HEALTHY" if health.healthy else "UNHEALTHY"
        print(f"\n{status} - {health.pool_address}")
        print(f"  Tick: {health.current_tick} ({health.tick_percent:.2f}% of MAX)")
        print(f"  Liquidity: {health.liquidity}")
        for issue in health.issues:
            print(f"  ! {issue}")

    unhealthy = [h for h in results if not h.healthy]
    print(f"\nTotal: {len(results)}, healthy: {len(results) - len(unhealthy)}, unhealthy: {len(unhealthy)}")
    return 1 if unhealthy else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Push Chain V3 pool tool")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG логи")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("encode-price", help="sqrtPriceX96 для цены (без сети)")
    p.add_argument("--token0", required=True, help="Адрес первого токена")
    p.add_argument("--decimals0", type=int, required=True)
    p.add_argument("--token1", required=True, help="Адрес второго токена")
    p.add_argument("--decimals1", type=int, required=True)
    p.add_argument("--price", required=True, help="1 token0 = price token1")
    p.set_defaults(func=cmd_encode_price)

    p = sub.add_parser("plan-range", help="Диапазон тиков (без сети)")
    p.add_argument("--fee", type=int, default=int(DEFAULT_FEE))
    p.add_argument("--tick", type=int, required=True, help="Текущий тик пула")
    p.add_argument("--range", type=int, default=DEFAULT_RANGE, help="Полуширина в тиках")
    p.set_defaults(func=cmd_plan_range)

    p = sub.add_parser("create-pool", help="Создать и инициализировать пул")
    p.add_argument("--token0", required=True)
    p.add_argument("--token1", required=True)
    p.add_argument("--price", required=True, help="1 token0 = price token1")
    p.add_argument("--fee", type=int, default=int(DEFAULT_FEE))
    p.set_defaults(func=cmd_create_pool)

    for name, full in (("add-liquidity", False), ("add-full-range", True)):
        p = sub.add_parser(name, help="Добавить ликвидность" + (" (полный диапазон)" if full else ""))
        p.add_argument("--pool", required=True)
        p.add_argument("--token", required=True, help="Токен, к которому относится --amount")
        p.add_argument("--amount", required=True)
        p.add_argument("--other-amount", required=True, help="Сумма второго токена пула")
        if not full:
            p.add_argument("--range", type=int, default=DEFAULT_RANGE, help="Полуширина в тиках")
        p.set_defaults(func=cmd_add_liquidity, full_range=full)

    p = sub.add_parser("swap", help="Обмен через SwapRouter (exactInputSingle)")
    p.add_argument("--pool", required=True)
    p.add_argument("--token-in", required=True, help="Отдаваемый токен пула")
    p.add_argument("--amount", required=True, help="Сумма token-in")
    p.add_argument("--min-out", default="0", help="Минимум получаемого токена")
    p.set_defaults(func=cmd_swap)

    p = sub.add_parser("pool-health", help="Проверка пулов")
    p.add_argument("--pool", help="Один пул (по умолчанию все из реестра)")
    p.set_defaults(func=cmd_pool_health)

    return parser


def main(argv=None) -> int:
    """Главная функция."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        return args.func(args) or 0
    except (PricingError, TransactionFailed, ValueError) as e:
        logger.error(str(e))
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
