"""
binload Output Module
======================

Console display and report generation for loaded binaries.
"""

from binload.output.console import BinloadConsoleOutput
from binload.output.report import BinloadReportGenerator

__all__ = [
    "BinloadConsoleOutput",
    "BinloadReportGenerator",
]
