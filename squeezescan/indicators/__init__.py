from squeezescan.indicators.engine import IndicatorEngine, IndicatorSnapshot

__all__ = ["IndicatorEngine", "IndicatorSnapshot"]
