"""
Database table definitions for FVG analysis results.

The fvg_analysis table stores one row per detected Fair Value Gap.
Timestamps are stored as naive UTC datetimes. gap_size and volume use
double precision, which holds a Python float exactly, so stored values
compare equal to the detected ones.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the storage convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FvgAnalysisRecord(Base):
    """FVG analysis result row"""
    __tablename__ = "fvg_analysis"

    id = Column(String(36), primary_key=True, default=_new_id)
    fvg_type = Column(Text, nullable=False)  # 'bullish' or 'bearish'
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    gap_size = Column(Float(precision=53), nullable=False)
    volume = Column(Float(precision=53), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return (
            f"FvgAnalysisRecord(id='{self.id}', fvg_type='{self.fvg_type}', "
            f"start_time={self.start_time!r}, gap_size={self.gap_size})"
        )
