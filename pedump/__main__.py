"""
PEDump Module Entry Point
==========================

Allows running the PEDump CLI via: python -m pedump
"""

from pedump.cli import main

if __name__ == "__main__":
    main()
