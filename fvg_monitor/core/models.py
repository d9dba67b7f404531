"""
Market data and Fair Value Gap models.

This module defines the value objects that flow through the FVG pipeline:
- Candle: A single OHLCV sample, the detector's input
- FvgEvent: A detected Fair Value Gap, the detector's output
- StoredFvg: An FvgEvent rehydrated from the result store
- ActionResult: Success/failure wrapper used for uniform reporting

Timestamps on Candle and FvgEvent are epoch milliseconds. StoredFvg carries
UTC datetimes, converted with ms_to_datetime() / datetime_to_ms().
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

FvgType = Literal["bullish", "bearish"]

T = TypeVar("T")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """
    Convert an epoch-milliseconds timestamp to an aware UTC datetime.

    Uses timedelta arithmetic rather than float division so the conversion
    is exact for every millisecond value.

    Examples:
        >>> ms_to_datetime(1700000000123)
        datetime.datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=datetime.timezone.utc)
    """
    return _EPOCH + timedelta(milliseconds=timestamp_ms)


def datetime_to_ms(value: datetime) -> int:
    """
    Convert a datetime back to epoch milliseconds.

    Naive datetimes are interpreted as UTC, which is how the result store
    writes them.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


class Candle(BaseModel):
    """
    Immutable OHLCV candlestick.

    Prices are not cross-validated (a candle with low > high is accepted)
    so that malformed exchange data flows through FVG detection unchanged.
    Numeric strings, as returned by the BingX API, are coerced to floats.

    Attributes:
        open: Opening price
        close: Closing price
        high: Highest price during the interval
        low: Lowest price during the interval
        volume: Traded volume during the interval
        time: Interval timestamp in epoch milliseconds

    Examples:
        >>> candle = Candle(open="100", close="110", high="115", low="95",
        ...                 volume="1000", time=1670000000000)
        >>> candle.high
        115.0
    """

    model_config = ConfigDict(frozen=True)

    open: float = Field(description="Opening price")
    close: float = Field(description="Closing price")
    high: float = Field(description="Highest price")
    low: float = Field(description="Lowest price")
    volume: float = Field(description="Traded volume")
    time: int = Field(description="Timestamp in epoch milliseconds")


class FvgEvent(BaseModel):
    """
    Immutable Fair Value Gap detection result.

    One event is produced per qualifying three-candle window. Events have
    no identity beyond their field values.

    Field names serialize to camelCase (fvgType, startTime, endTime,
    gapSize, volume) with model_dump(by_alias=True); both spellings are
    accepted on input.

    Attributes:
        fvg_type: Direction of the gap ('bullish' or 'bearish')
        start_time: Timestamp (ms) of the first candle of the window
        end_time: Timestamp (ms) of the third candle of the window
        gap_size: Magnitude of the price gap
        volume: Sum of the three candles' volumes

    Examples:
        >>> event = FvgEvent(fvg_type="bullish", start_time=1000,
        ...                  end_time=3000, gap_size=10.0, volume=450.0)
        >>> event.model_dump(by_alias=True)["fvgType"]
        'bullish'
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    fvg_type: FvgType = Field(description="Direction of the gap")
    start_time: int = Field(description="First candle timestamp (ms)")
    end_time: int = Field(description="Third candle timestamp (ms)")
    gap_size: float = Field(ge=0, description="Magnitude of the price gap")
    volume: float = Field(description="Total volume of the three candles")


class StoredFvg(BaseModel):
    """
    FVG event as persisted in the fvg_analysis table.

    Built from ORM rows (from_attributes). Naive datetimes coming back from
    the database are tagged as UTC.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    fvg_type: FvgType
    start_time: datetime
    end_time: datetime
    gap_size: float
    volume: float
    created_at: datetime
    updated_at: datetime

    @field_validator("start_time", "end_time", "created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_event(self) -> FvgEvent:
        """Convert back to the FvgEvent that was stored."""
        return FvgEvent(
            fvg_type=self.fvg_type,
            start_time=datetime_to_ms(self.start_time),
            end_time=datetime_to_ms(self.end_time),
            gap_size=self.gap_size,
            volume=self.volume,
        )

    def to_display(self) -> Dict[str, Any]:
        """
        Presentation form: camelCase keys and ISO-8601 timestamps.

        Examples:
            >>> stored.to_display()["startTime"]
            '2023-11-14T22:13:20.123000+00:00'
        """
        return {
            "id": self.id,
            "fvgType": self.fvg_type,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "gapSize": self.gap_size,
            "volume": self.volume,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class ActionResult(BaseModel, Generic[T]):
    """
    Success/failure outcome with a human-readable message.

    Used wherever a component reports to its caller instead of raising:
    the FVG analysis wrapper and the pipeline cycle.

    Attributes:
        is_success: Whether the action succeeded
        message: Human-readable description of the outcome
        data: Payload on success, None on failure

    Examples:
        >>> result = ActionResult.ok([], "Nothing to do.")
        >>> result.is_success, result.data
        (True, [])
        >>> ActionResult.fail("boom").data is None
        True
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    is_success: bool
    message: str
    data: Optional[T] = None

    @classmethod
    def ok(cls, data: T, message: str) -> "ActionResult[T]":
        return cls(is_success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str) -> "ActionResult[T]":
        return cls(is_success=False, message=message, data=None)
