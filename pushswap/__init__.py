"""
Push Chain V3 pool tooling.

Инициализация цены пулов (sqrtPriceX96) и расчёт диапазонов тиков
для форка Uniswap V3 на Push Chain.
"""

__version__ = "1.0.0"
