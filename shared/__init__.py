"""
PEDump Shared Module
====================

Configuration, logging and console utilities shared by the PEDump
packages.
"""

from shared.config import PEDumpConfig
from shared.console import PEDumpConsole
from shared.logger import PEDumpLogger

__all__ = ["PEDumpConfig", "PEDumpConsole", "PEDumpLogger"]
