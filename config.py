"""
Configuration for Push Chain V3 pool tooling

Конфигурация для работы с форком Uniswap V3 на Push Chain (Donut testnet).
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

from pushswap.math.ticks import DEFAULT_RANGE_HALF_WIDTH, FEE_TO_TICK_SPACING, FeeTier


@dataclass
class ChainConfig:
    """Конфигурация сети."""
    chain_id: int
    name: str
    rpc_url: str
    explorer_url: str
    native_token: str


@dataclass
class ContractsConfig:
    """Адреса задеплоенных контрактов V3."""
    factory: str
    wpush: str
    swap_router: str
    position_manager: str


@dataclass
class Settings:
    """Настройки из окружения (.env)."""
    rpc_url: str
    private_key: Optional[str]
    registry_path: str


# ============================================================
# CHAIN CONFIGURATIONS
# ============================================================

PUSH_TESTNET = ChainConfig(
    chain_id=42101,
    name="Push Chain",
    rpc_url="https://evm.rpc-testnet-donut-node1.push.org",
    explorer_url="https://donut.push.network",
    native_token="PUSH",
)

# ============================================================
# CONTRACT ADDRESSES (Push Chain testnet deployment)
# ============================================================

PUSH_CONTRACTS = ContractsConfig(
    factory="0x4cBD1E2E6f44C0e406F5FfC9bb5312a281610E94",
    wpush="0xefFe95a7c6C4b7fcDC972b6B30FE9219Ad1AfD17",
    swap_router="0xf90F08fD301190Cd34CC9eFc5A76351e95051670",
    position_manager="0x4e8152fB4C72De9f187Cc93E85135283517B2fbB",
)

# ============================================================
# FEE TIERS
# ============================================================

FEE_TIERS = {
    "LOW": FeeTier.LOW,         # 0.05% - стабильные пары
    "MEDIUM": FeeTier.MEDIUM,   # 0.30% - стандартный tier
    "HIGH": FeeTier.HIGH,       # 1.00% - экзотические пары
}

# Tick spacing для каждого fee tier
TICK_SPACING: Dict[int, int] = {int(fee): spacing for fee, spacing in FEE_TO_TICK_SPACING.items()}

# ============================================================
# DEFAULT SETTINGS
# ============================================================

DEFAULT_FEE = FeeTier.MEDIUM
DEFAULT_RANGE = DEFAULT_RANGE_HALF_WIDTH
DEFAULT_TX_TIMEOUT = 300
DEFAULT_REGISTRY_PATH = "test-addresses.json"

# Порог здоровья пула
HEALTH_MIN_LIQUIDITY = 10 ** 17   # 0.1 при 18 decimals
HEALTH_TICK_THRESHOLD = 0.9       # > 90% от MAX_TICK = экстремальный тик


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_chain_config(chain_id: int) -> ChainConfig:
    """Получение конфигурации по chain_id."""
    configs = {
        42101: PUSH_TESTNET,
    }
    if chain_id not in configs:
        raise ValueError(f"Unknown chain_id: {chain_id}")
    return configs[chain_id]


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Загрузка настроек из .env и переменных окружения.

    Переменные:
        PUSH_RPC_URL - RPC (по умолчанию RPC тестнета)
        PRIVATE_KEY - ключ для подписи транзакций (опционально)
        ADDRESS_REGISTRY_PATH - JSON с адресами пулов
    """
    load_dotenv(env_file)

    return Settings(
        rpc_url=os.getenv("PUSH_RPC_URL") or PUSH_TESTNET.rpc_url,
        private_key=os.getenv("PRIVATE_KEY") or None,
        registry_path=os.getenv("ADDRESS_REGISTRY_PATH") or DEFAULT_REGISTRY_PATH,
    )
