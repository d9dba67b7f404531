"""
Storage module for FVG analysis results.

This module provides:
- fvg_analysis table definition
- FvgRepository for storing and listing results
"""

from .repository import FvgRepository, create_engine_from_settings

__all__ = ["FvgRepository", "create_engine_from_settings"]
