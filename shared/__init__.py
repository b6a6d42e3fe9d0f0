"""
binload Shared Module
=====================

Configuration, logging and console helpers shared by the binload packages.
"""

from shared.config import BinloadConfig

__all__ = ["BinloadConfig"]
