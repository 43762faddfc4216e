from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple


BUY = "BUY"
SELL = "SELL"

UP = "UP"
DOWN = "DOWN"


@dataclass(frozen=True)
class Candle:
    timestamp_ms: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class IndicatorParams:
    adx_period: int = 14
    adx_threshold: float = 20.0
    slope_window: int = 14
    slope_smooth: int = 5
    gog_span: int = 5
    swing_left: int = 3
    swing_right: int = 3
    fibo_retr_low: float = 0.382
    fibo_retr_high: float = 0.618


@dataclass(frozen=True)
class TargetParams:
    sl_buffer_ratio: float = 0.05  # fraction of the leg range
    tp_multipliers: Tuple[float, float, float] = (1.0, 1.618, 2.618)


@dataclass(frozen=True)
class IndicatorRecord:
    adx: Optional[float]
    slope: Optional[float]
    gog: Optional[float]


@dataclass(frozen=True)
class AnnotatedCandle:
    timestamp_ms: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    adx: Optional[float]
    slope: Optional[float]
    gog: Optional[float]
    is_swing_high: bool = False
    is_swing_low: bool = False

    @property
    def indicators(self) -> IndicatorRecord:
        return IndicatorRecord(adx=self.adx, slope=self.slope, gog=self.gog)


@dataclass(frozen=True)
class FiboLeg:
    direction: str  # UP or DOWN
    swing_high_idx: int
    swing_high_price: float
    swing_low_idx: int
    swing_low_price: float
    level_low_ratio: float   # level at fibo_retr_low
    level_high_ratio: float  # level at fibo_retr_high

    @property
    def range(self) -> float:
        return abs(self.swing_high_price - self.swing_low_price)

    def zone(self) -> Tuple[float, float]:
        lo = min(self.level_low_ratio, self.level_high_ratio)
        hi = max(self.level_low_ratio, self.level_high_ratio)
        return lo, hi

    def contains(self, price: float) -> bool:
        lo, hi = self.zone()
        return lo <= price <= hi


@dataclass(frozen=True)
class Signal:
    timestamp_ms: int
    type: str  # BUY or SELL
    price: float
    reason: str
    sl: float
    tp1: float
    tp2: float
    tp3: float


@dataclass(frozen=True)
class EngineResult:
    candles: List[AnnotatedCandle]
    signals: List[Signal]


@dataclass(frozen=True)
class Asset:
    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
