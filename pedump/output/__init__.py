"""
PEDump Output Module
=====================

Console tree dump and JSON report generation for decoded images.
"""

from pedump.output.console import PEDumpConsoleOutput
from pedump.output.report import PEDumpReportGenerator

__all__ = [
    "PEDumpConsoleOutput",
    "PEDumpReportGenerator",
]
