"""
Fair Value Gap detection.

A Fair Value Gap is a three-candle imbalance where the extreme of the third
candle does not overlap the extreme of the first:

- Bullish FVG: candle_3.low > candle_1.high, gap = candle_3.low - candle_1.high
- Bearish FVG: candle_3.high < candle_1.low, gap = candle_1.low - candle_3.high

Both carry the total volume of the three candles. The middle candle only
contributes its volume.

Candles must be sorted by time ascending; ordering is not checked.
Detection is pure: no logging, no I/O, no state.
"""

from typing import List, Sequence

from ..core.models import ActionResult, Candle, FvgEvent

WINDOW_SIZE = 3


def detect_fvgs(candles: Sequence[Candle]) -> List[FvgEvent]:
    """
    Scan candles with a sliding three-candle window and return every FVG.

    The window advances one candle at a time and overlapping windows are
    kept, so a single candle can take part in several events. Bullish and
    bearish tests are independent: a malformed window (low > high) can
    produce both, bullish first.

    Args:
        candles: Candles sorted by time ascending

    Returns:
        List[FvgEvent]: Events in window order. Empty when fewer than
            three candles are given.

    Examples:
        >>> candles = [
        ...     Candle(open=90, close=95, high=100, low=85, volume=100, time=1000),
        ...     Candle(open=95, close=98, high=102, low=90, volume=150, time=2000),
        ...     Candle(open=102, close=105, high=108, low=110, volume=200, time=3000),
        ... ]
        >>> [(e.fvg_type, e.gap_size, e.volume) for e in detect_fvgs(candles)]
        [('bullish', 10.0, 450.0)]
    """
    events: List[FvgEvent] = []

    for i in range(len(candles) - WINDOW_SIZE + 1):
        candle_1 = candles[i]
        candle_2 = candles[i + 1]
        candle_3 = candles[i + 2]

        total_volume = candle_1.volume + candle_2.volume + candle_3.volume

        if candle_3.low > candle_1.high:
            events.append(FvgEvent(
                fvg_type="bullish",
                start_time=candle_1.time,
                end_time=candle_3.time,
                gap_size=candle_3.low - candle_1.high,
                volume=total_volume,
            ))

        if candle_3.high < candle_1.low:
            events.append(FvgEvent(
                fvg_type="bearish",
                start_time=candle_1.time,
                end_time=candle_3.time,
                gap_size=candle_1.low - candle_3.high,
                volume=total_volume,
            ))

    return events


def analyze_fvgs(candles: Sequence[Candle]) -> ActionResult[List[FvgEvent]]:
    """
    Run FVG detection and report the outcome instead of raising.

    Fewer than three candles is a normal outcome (success, no events).
    Any unexpected error during the scan becomes a failed result carrying
    the error message; nothing is retried or logged here.

    Args:
        candles: Candles sorted by time ascending

    Returns:
        ActionResult[List[FvgEvent]]: Detected events on success

    Examples:
        >>> analyze_fvgs([]).message
        'Not enough data to perform FVG analysis.'
    """
    try:
        if len(candles) < WINDOW_SIZE:
            return ActionResult.ok([], "Not enough data to perform FVG analysis.")

        return ActionResult.ok(
            detect_fvgs(candles),
            "FVG analysis completed successfully.",
        )
    except Exception as e:
        return ActionResult.fail(
            str(e) or "An unknown error occurred during FVG analysis."
        )
