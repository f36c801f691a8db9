from squeezescan.indicators.builtin.levels import average_volume, support_resistance, volume_ratio
from squeezescan.indicators.builtin.momentum import momentum, rsi, rsi_series, volume_spike
from squeezescan.indicators.builtin.moving_average import MacdResult, ema, macd, sma
from squeezescan.indicators.builtin.volatility import Band, Channel, atr, bollinger, donchian

__all__ = [
    "average_volume",
    "support_resistance",
    "volume_ratio",
    "momentum",
    "rsi",
    "rsi_series",
    "volume_spike",
    "MacdResult",
    "ema",
    "macd",
    "sma",
    "Band",
    "Channel",
    "atr",
    "bollinger",
    "donchian",
]
